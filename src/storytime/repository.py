"""SQLite-backed read access to user accounts."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite


@dataclass(frozen=True)
class UserProfile:
    email: str
    username: str
    yob: int
    preferred_voice: str
    cached_story_count: int
    role: str = "customer"

    def age(self, today: _dt.date | None = None) -> int:
        """Age in years derived from the year of birth."""

        current = today or _dt.date.today()
        return current.year - self.yob

    @classmethod
    def from_row(cls, row: aiosqlite.Row | dict[str, Any]) -> "UserProfile":
        return cls(
            email=row["email"],
            username=row["username"],
            yob=int(row["yob"]),
            preferred_voice=row["preferred_voice"],
            cached_story_count=int(row["cached_story_count"]),
            role=row["role"] or "customer",
        )


class UserRepository:
    """Look up user profiles stored in the ``user_account`` table."""

    def __init__(self, database_path: Path):
        self._path = database_path
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the SQLite connection and ensure the table exists."""

        if self._connection is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._create_schema()

    async def _create_schema(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS user_account (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                username TEXT NOT NULL,
                hashed_password TEXT NOT NULL,
                yob INTEGER CHECK (yob >= 1900) NOT NULL,
                is_vip BOOLEAN DEFAULT 1,
                role TEXT DEFAULT 'customer',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL,
                preferred_voice TEXT DEFAULT 'nova' NOT NULL,
                cached_story_count INTEGER CHECK (cached_story_count >= 0) NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_user_account_email ON user_account(email);
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def get_user_by_email(self, email: str) -> UserProfile | None:
        assert self._connection is not None
        cursor = await self._connection.execute(
            """
            SELECT email, username, yob, preferred_voice, cached_story_count, role
            FROM user_account
            WHERE email = ?
            """,
            (email,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            return None
        return UserProfile.from_row(row)

    async def create_user(
        self,
        *,
        email: str,
        username: str,
        hashed_password: str,
        yob: int,
        preferred_voice: str = "nova",
        cached_story_count: int = 0,
        role: str = "customer",
    ) -> UserProfile:
        """Insert a user account row (used for seeding and tests)."""

        assert self._connection is not None
        await self._connection.execute(
            """
            INSERT INTO user_account (
                email, username, hashed_password, yob, preferred_voice,
                cached_story_count, role
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                email,
                username,
                hashed_password,
                yob,
                preferred_voice,
                cached_story_count,
                role,
            ),
        )
        await self._connection.commit()
        return UserProfile(
            email=email,
            username=username,
            yob=yob,
            preferred_voice=preferred_voice,
            cached_story_count=cached_story_count,
            role=role,
        )


__all__ = ["UserProfile", "UserRepository"]

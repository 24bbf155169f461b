import pathlib
import sys
import time

import jwt
import pytest
from pydantic import AnyHttpUrl, SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from storytime.config import Settings  # noqa: E402

JWT_SECRET = "test-jwt-secret"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key=SecretStr("test-openai-key"),
        openai_base_url=AnyHttpUrl("https://example.com/v1"),
        jwt_secret=SecretStr(JWT_SECRET),
        user_database_path=tmp_path / "users.db",
    )


@pytest.fixture
def make_token():
    def _make(subject: str | None = "kid@example.com", *, expires_in: int = 3600) -> str:
        claims: dict[str, object] = {"exp": int(time.time()) + expires_in}
        if subject is not None:
            claims["sub"] = subject
        return jwt.encode(claims, JWT_SECRET, algorithm="HS256")

    return _make

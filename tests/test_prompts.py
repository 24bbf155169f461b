"""Tests for system prompt composition."""

import datetime as dt

import pytest

from storytime.chat.prompts import (
    GENERATION_PRESETS,
    QueryType,
    VisualTask,
    build_messages,
    compose_system_prompt,
    is_night_time,
    parse_local_time,
)
from storytime.chat.themes import THEMES

MAGIC = next(theme for theme in THEMES if theme.key == "MAGIC")
FAMILY = next(theme for theme in THEMES if theme.key == "FAMILY")


def test_story_prompt_contains_framing_and_theme_fragments():
    prompt = compose_system_prompt(age=8, query_type="story", themes=[MAGIC, FAMILY])

    assert prompt.startswith(
        "You are POPO, a creative storyteller for a 8-year-old audience."
    )
    assert "- Imaginative yet relatable" in prompt
    assert "- Told in plain text without special formatting" in prompt
    assert f"{MAGIC.story_prompt}\n{FAMILY.story_prompt}" in prompt
    assert "Once upon a time" in prompt


def test_qna_prompt_uses_educator_framing():
    prompt = compose_system_prompt(age=11, query_type=QueryType.QNA, themes=[MAGIC])

    assert "knowledgeable educator for a 11-year-old audience" in prompt
    assert "- Educational and engaging" in prompt
    assert MAGIC.qna_prompt in prompt
    assert MAGIC.story_prompt not in prompt
    assert "Once upon a time" not in prompt


def test_closing_tone_omitted_without_time():
    prompt = compose_system_prompt(age=8, query_type="story", themes=[MAGIC])

    assert "Current local time" not in prompt
    assert "appropriate ending" not in prompt


@pytest.mark.parametrize(
    "timestamp, night",
    [
        ("2024-05-01T21:30:00+08:00", True),
        ("2024-05-01T05:59:00+08:00", True),
        ("2024-05-01T06:00:00+08:00", False),
        ("2024-05-01T18:59:00-05:00", False),
        ("2024-05-01T19:00:00Z", True),
    ],
)
def test_story_closing_tone_follows_local_hour(timestamp, night):
    moment = parse_local_time(timestamp)
    prompt = compose_system_prompt(
        age=9, query_type="story", themes=[MAGIC], current_time=moment
    )

    assert f"Current local time: {moment.isoformat()}" in prompt
    if night:
        assert prompt.endswith("conclude with a calming, sleep-appropriate ending.")
    else:
        assert prompt.endswith("Conclude with an energetic, day-appropriate ending.")


def test_qna_mode_has_no_closing_tone():
    moment = parse_local_time("2024-05-01T22:00:00+00:00")
    prompt = compose_system_prompt(
        age=9, query_type="qna", themes=[MAGIC], current_time=moment
    )

    assert "Current local time" in prompt
    assert "appropriate ending" not in prompt


def test_visual_clause_names_task():
    prompt = compose_system_prompt(
        age=7,
        query_type="qna",
        themes=[MAGIC],
        is_visual=True,
        visual_task=VisualTask.INSECTS,
    )
    assert prompt.endswith("\nBased on the provided image related to Insects.")


def test_visual_clause_without_task():
    prompt = compose_system_prompt(
        age=7, query_type="qna", themes=[MAGIC], is_visual=True
    )
    assert prompt.endswith("\nBased on the provided image.")


def test_textual_prompt_has_no_image_clause():
    prompt = compose_system_prompt(age=7, query_type="qna", themes=[MAGIC])
    assert "provided image" not in prompt


def test_compose_is_deterministic():
    kwargs = dict(
        age=10,
        query_type="story",
        themes=[FAMILY, MAGIC],
        is_visual=True,
        visual_task="Plants",
        current_time=parse_local_time("2024-01-01T20:00:00+01:00"),
    )
    assert compose_system_prompt(**kwargs) == compose_system_prompt(**kwargs)


def test_parse_local_time_rejects_garbage():
    with pytest.raises(ValueError):
        parse_local_time("yesterday evening")
    with pytest.raises(ValueError):
        parse_local_time("")


def test_is_night_time_boundaries():
    assert is_night_time(dt.datetime(2024, 1, 1, 19, 0))
    assert is_night_time(dt.datetime(2024, 1, 1, 0, 30))
    assert not is_night_time(dt.datetime(2024, 1, 1, 12, 0))


def test_generation_presets_are_fixed():
    assert GENERATION_PRESETS[QueryType.STORY].temperature == pytest.approx(1.01)
    assert GENERATION_PRESETS[QueryType.QNA].temperature == pytest.approx(0.44)
    assert GENERATION_PRESETS[QueryType.STORY].as_payload() == {
        "temperature": 1.01,
        "max_tokens": 16_384,
    }
    with pytest.raises(TypeError):
        GENERATION_PRESETS[QueryType.QNA] = GENERATION_PRESETS[QueryType.STORY]  # type: ignore[index]


def test_build_messages_prepends_system_prompt():
    history = [{"role": "user", "content": "Hi"}]

    messages = build_messages("SYSTEM", history)

    assert messages == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "Hi"},
    ]
    assert messages[1] is not history[0]


def test_build_messages_with_welcome():
    messages = build_messages(
        "SYSTEM", [{"role": "user", "content": "Hi"}], welcome_message="Welcome!"
    )
    assert [m["role"] for m in messages] == ["system", "assistant", "user"]


def test_local_time_is_echoed_as_sent():
    raw = "2024-05-01T21:30:00.000Z"
    prompt = compose_system_prompt(
        age=9,
        query_type="story",
        themes=[MAGIC],
        current_time=parse_local_time(raw),
        current_time_text=raw,
    )

    assert f"Current local time: {raw}\n" in prompt
    assert "+00:00" not in prompt
    assert prompt.endswith("conclude with a calming, sleep-appropriate ending.")

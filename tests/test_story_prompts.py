# tests/test_story_prompts.py

from __future__ import annotations

from types import SimpleNamespace

import story_prompts
from story_prompts import get_prompt_by_day, get_todays_prompt, next_past_prompt_day


def test_rotation_has_thirty_days_with_known_categories() -> None:
    days = [entry[0] for entry in story_prompts.STORY_PROMPTS]
    assert days == list(range(1, 31))
    assert {entry[1] for entry in story_prompts.STORY_PROMPTS} <= set(story_prompts.CATEGORY_LABELS)


def test_todays_prompt_wraps_around() -> None:
    assert get_todays_prompt(0)["day"] == 1
    assert get_todays_prompt(30)["day"] == 1
    assert get_todays_prompt(31)["day"] == 2


def test_prompt_by_day() -> None:
    prompt = get_prompt_by_day(5)
    assert prompt["day"] == 5
    assert prompt["category_label"] == story_prompts.CATEGORY_LABELS[prompt["category"]]
    assert get_prompt_by_day(31) is None


def test_next_past_prompt_ignores_today_mode_captures() -> None:
    caps = [SimpleNamespace(prompt_day=d) for d in (0, 0, 3, 4)]
    assert next_past_prompt_day(caps) == 3
    assert next_past_prompt_day([SimpleNamespace(prompt_day=1)] * 30) == 1

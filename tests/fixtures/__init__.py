"""Test fixtures for nightstalker tests."""

from .choices import make_choice, combat_choice, stealth_choice, escape_choice, search_choice
from .states import make_state
from .stories import make_story_response, story_choices

__all__ = [
    "make_choice",
    "combat_choice",
    "stealth_choice",
    "escape_choice",
    "search_choice",
    "make_state",
    "make_story_response",
    "story_choices",
]

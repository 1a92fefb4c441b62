"""
Choice Sanitizer - Clamps generator-proposed choices into legal ranges.

Two entry points with different contracts:
  sanitize_choice(s)  repairs whatever the generator sent (total, pure)
  validate_choice     only reports problems; the resolver uses it to fail fast
"""

import math
from typing import Any, Iterable, Union

from .errors import ChoiceCountError
from .state import ActionType, Choice, ChoiceRequirements

DC_RANGE = (1, 20)
RISK_RANGE = (-30, -5)
REWARD_RANGE = (5, 25)

DEFAULT_ACTION_TYPE = ActionType.SEARCH
PLACEHOLDER_TEXT = "Keep moving"


def _clamp(value: Any, bounds: tuple[int, int]) -> int:
    low, high = bounds
    if isinstance(value, bool):
        return low
    if isinstance(value, float):
        # json.loads accepts NaN and Infinity
        if not math.isfinite(value):
            return low
        value = round(value)
    elif not isinstance(value, int):
        try:
            value = int(str(value).strip())
        except (TypeError, ValueError):
            return low
    return max(low, min(high, value))


def _coerce_type(value: Any) -> ActionType:
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(str(value).strip().lower())
    except ValueError:
        return DEFAULT_ACTION_TYPE


def sanitize_choice(raw: Union[Choice, dict]) -> Choice:
    """
    Clamp one choice into range.

    Accepts a Choice or its wire-form mapping. Unknown action types become
    'search'. A valid choice comes back equal to the input.
    """
    if isinstance(raw, Choice):
        data = raw.to_dict()
        requirements = raw.requirements
    else:
        data = raw if isinstance(raw, dict) else {}
        requirements = ChoiceRequirements.from_dict(data.get("requirements"))

    text = str(data.get("text") or "")
    if not text.strip():
        text = PLACEHOLDER_TEXT
    return Choice(
        text=text,
        dc=_clamp(data.get("dc"), DC_RANGE),
        risk_factor=_clamp(data.get("riskFactor"), RISK_RANGE),
        reward_value=_clamp(data.get("rewardValue"), REWARD_RANGE),
        type=_coerce_type(data.get("type")),
        logic=str(data.get("logic") or ""),
        requirements=requirements,
    )


def sanitize_choices(
    raw_choices: Iterable[Union[Choice, dict]],
    expected_count: int = 3,
) -> list[Choice]:
    """
    Sanitize a batch of choices.

    The count is not repaired: a batch of the wrong size raises
    ChoiceCountError for the session to handle.
    """
    raw_choices = list(raw_choices)
    if len(raw_choices) != expected_count:
        raise ChoiceCountError(expected_count, len(raw_choices))
    return [sanitize_choice(c) for c in raw_choices]


def validate_choice(choice: Choice) -> list[str]:
    """List contract violations in a choice. Empty list means valid."""
    problems = []
    if not isinstance(choice, Choice):
        return [f"expected Choice, got {type(choice).__name__}"]
    if not isinstance(choice.type, ActionType):
        problems.append(f"unknown action type {choice.type!r}")
    for name, value, (low, high) in (
        ("dc", choice.dc, DC_RANGE),
        ("risk_factor", choice.risk_factor, RISK_RANGE),
        ("reward_value", choice.reward_value, REWARD_RANGE),
    ):
        if not isinstance(value, int) or isinstance(value, bool):
            problems.append(f"{name} must be an integer, got {value!r}")
        elif not low <= value <= high:
            problems.append(f"{name} {value} outside [{low}, {high}]")
    return problems

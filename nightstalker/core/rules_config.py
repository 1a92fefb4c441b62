"""
Rules configuration.

Every tunable number the resolver and the game-over evaluator use lives on
RulesConfig. With no arguments it is the classic rule set. Rules files are
YAML; a file may name a preset and override individual keys on top of it.

Resolver, evaluator and session all take a RulesConfig rather than reading
module constants.
"""

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from .errors import RulesConfigError


FAILURE_PENALTY_MODES = ("full", "half")


@dataclass
class RulesConfig:
    """Resolved rule set for a game."""
    name: str = "classic"

    # Bounds
    score_max: int = 100
    starting_score: int = 100
    tension_max: int = 10
    total_turns: int = 30
    turns_per_phase: int = 6
    choices_per_turn: int = 3

    # Roll modifiers
    modifier_cap: int = 5
    injured_penalty: int = -2
    exposed_penalty: int = -2
    hidden_stealth_bonus: int = 2
    weapon_combat_bonus: int = 2
    empowered_combat_bonus: int = 2
    critical_condition_threshold: int = 50
    critical_condition_penalty: int = -2
    high_tension_threshold: int = 8
    high_tension_penalty: int = -1
    environment_penalty_cap: int = 2
    time_modifiers: dict[str, int] = field(default_factory=lambda: {
        "dusk": 0,
        "midnight": -1,
        "lateNight": -2,
        "nearDawn": -2,
        "dawn": -1,
    })
    presence_modifiers: dict[str, int] = field(default_factory=lambda: {
        "distant": 0,
        "hunting": 0,
        "closingIn": -1,
        "imminent": -1,
    })

    # Survival deltas
    success_reward_step: int = 5
    success_reward_divisor: int = 4
    max_success_reward: int = 25
    failure_penalty_mode: str = "full"
    max_failure_penalty: int = -30
    bleeding_drain: int = 5

    # Tension and escalation
    tension_on_failure: int = 1
    tension_on_encounter: int = 2
    tension_on_stealth_success: int = -1
    escalation_tension_threshold: int = 8
    deescalate_on_success: bool = True

    # Outcome text
    critical_margin: int = 10

    # Endings
    consecutive_failures_limit: int = 3
    caught_tension_threshold: Optional[int] = None
    victory_threshold: int = 100
    escape_threshold: int = 80
    escape_min_encounters: int = 0

    def time_modifier(self, phase: str) -> int:
        return self.time_modifiers.get(phase, 0)

    def presence_modifier(self, presence: str) -> int:
        return self.presence_modifiers.get(presence, 0)

    def success_reward(self, dc: int, reward_value: int) -> int:
        """Survival gained on success: scales with dc, capped by the choice's reward."""
        scaled = math.ceil(dc / self.success_reward_divisor) * self.success_reward_step
        return min(scaled, reward_value, self.max_success_reward)

    def failure_penalty(self, risk_factor: int) -> int:
        """Survival lost on failure, as a negative number."""
        if self.failure_penalty_mode == "half":
            penalty = -math.ceil(abs(risk_factor) / 2)
        else:
            penalty = -abs(risk_factor)
        return max(self.max_failure_penalty, penalty)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_rules_config(rules: Optional[dict]) -> RulesConfig:
    """
    Build a RulesConfig from a plain dict.

    Missing keys keep their defaults, unknown keys are ignored. A "preset"
    key selects the base rule set the other keys override. Values of the
    wrong type raise RulesConfigError.
    """
    if not rules:
        return RulesConfig()

    rules = dict(rules)
    preset = rules.pop("preset", None)
    merged = get_preset_rules(preset) if preset else {}
    for key, value in rules.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value

    defaults = RulesConfig()
    kwargs = {}
    for f in fields(RulesConfig):
        if f.name not in merged:
            continue
        value = merged[f.name]
        default = getattr(defaults, f.name)
        kwargs[f.name] = _check_type(f.name, value, default)

    config = RulesConfig(**kwargs)
    _check_values(config)
    return config


def _check_type(name: str, value, default):
    if default is None:
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise RulesConfigError(f"{name} must be an integer or null")
        return value
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise RulesConfigError(f"{name} must be true or false")
        return value
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            raise RulesConfigError(f"{name} must be an integer")
        return value
    if isinstance(default, dict):
        if not isinstance(value, dict):
            raise RulesConfigError(f"{name} must be a mapping")
        merged = dict(default)
        for key, item in value.items():
            if not isinstance(item, int) or isinstance(item, bool):
                raise RulesConfigError(f"{name}.{key} must be an integer")
            merged[key] = item
        return merged
    if not isinstance(value, type(default)):
        raise RulesConfigError(f"{name} must be a {type(default).__name__}")
    return value


def _check_values(config: RulesConfig) -> None:
    if config.failure_penalty_mode not in FAILURE_PENALTY_MODES:
        raise RulesConfigError(
            f"failure_penalty_mode must be one of {', '.join(FAILURE_PENALTY_MODES)}"
        )
    if config.score_max < 1:
        raise RulesConfigError("score_max must be positive")
    if not 0 < config.starting_score <= config.score_max:
        raise RulesConfigError("starting_score must be within (0, score_max]")
    if config.turns_per_phase < 1 or config.total_turns < 1:
        raise RulesConfigError("turn counts must be positive")
    if config.success_reward_divisor < 1:
        raise RulesConfigError("success_reward_divisor must be positive")
    if config.modifier_cap < 0 or config.environment_penalty_cap < 0:
        raise RulesConfigError("caps must not be negative")
    if config.choices_per_turn < 1:
        raise RulesConfigError("choices_per_turn must be positive")


def load_rules_file(path: Union[str, Path]) -> RulesConfig:
    """Load a YAML rules file. An empty file yields the classic rules."""
    path = Path(path)
    if not path.exists():
        raise RulesConfigError(f"Rules file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RulesConfigError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise RulesConfigError(f"{path} must contain a mapping of rule names to values")
    # Allow the rules to sit under a top-level "rules" key
    if isinstance(data.get("rules"), dict):
        data = data["rules"]
    return load_rules_config(data)


# --- Presets ---
# Plain dicts in the same shape a rules file uses.

def classic_rules() -> dict:
    """The canonical rule set: 100-point survival, de-escalation on success."""
    return RulesConfig().to_dict()


def overheal_rules() -> dict:
    """Survival can climb past 100 up to 150; victory and escape ask for more."""
    rules = classic_rules()
    rules.update({
        "name": "overheal",
        "score_max": 150,
        "victory_threshold": 125,
        "escape_threshold": 100,
    })
    return rules


def relentless_rules() -> dict:
    """The stalker never backs off, and the key only works after two encounters."""
    rules = classic_rules()
    rules.update({
        "name": "relentless",
        "deescalate_on_success": False,
        "escape_min_encounters": 2,
    })
    return rules


PRESETS = {
    "classic": classic_rules,
    "overheal": overheal_rules,
    "relentless": relentless_rules,
}


def get_preset_rules(name: str) -> dict:
    try:
        return PRESETS[name]()
    except KeyError:
        raise RulesConfigError(
            f"Unknown rules preset '{name}'. Available: {', '.join(sorted(PRESETS))}"
        ) from None


def get_preset(name: str) -> RulesConfig:
    return load_rules_config(get_preset_rules(name))

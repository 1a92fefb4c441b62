"""Core module: state model, rules and the turn resolution engine."""

from .state import (
    ActionResolution,
    ActionType,
    Choice,
    GameEnding,
    GameProgress,
    GameState,
    StalkerPresence,
    StatusEffect,
    TimeOfNight,
    initial_game_state,
)
from .dice import FixedDice, RandomDice
from .rules_config import RulesConfig, get_preset, load_rules_config, load_rules_file
from .timeline import time_of_night
from .validator import sanitize_choice, sanitize_choices, validate_choice
from .resolver import Resolver, resolve_action
from .game_over import GameOverResult, check_game_over, ending_message

__all__ = [
    "ActionResolution",
    "ActionType",
    "Choice",
    "GameEnding",
    "GameProgress",
    "GameState",
    "StalkerPresence",
    "StatusEffect",
    "TimeOfNight",
    "initial_game_state",
    "FixedDice",
    "RandomDice",
    "RulesConfig",
    "get_preset",
    "load_rules_config",
    "load_rules_file",
    "time_of_night",
    "sanitize_choice",
    "sanitize_choices",
    "validate_choice",
    "Resolver",
    "resolve_action",
    "GameOverResult",
    "check_game_over",
    "ending_message",
]

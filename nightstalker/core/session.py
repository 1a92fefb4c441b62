"""
Session Controller - Runs one night from first segment to ending.

Flow per turn:
  Player picks a choice -> Resolver -> Game-over check -> StoryTeller -> next choices

The controller owns the single live GameState and replaces it after every
resolution. The storyteller only ever sees complete states and only ever
hands back sanitized choices; when it fails, the fixed fallback segment
keeps the game playable.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from ..llm.storyteller import OPENING_MESSAGE, Message, StoryTeller
from .dice import DiceSource
from .errors import ChoiceCountError, SessionError, StoryGenerationError
from .game_over import check_game_over, ending_message
from .resolver import Resolver
from .rules_config import RulesConfig
from .state import (
    ActionType,
    Choice,
    Companion,
    EnvironmentalModifiers,
    GameEnding,
    GameState,
    StatusEffect,
    initial_game_state,
)

logger = logging.getLogger(__name__)

FALLBACK_STORY = (
    "The shadows grow longer as The Stalker's presence looms... "
    "Something has gone wrong, but you must keep moving."
)

FALLBACK_CHOICES = (
    Choice(
        text="Hide in the nearest room",
        dc=7,
        risk_factor=-10,
        reward_value=10,
        type=ActionType.STEALTH,
        logic="Basic stealth option with moderate risk/reward",
    ),
    Choice(
        text="Make a run for it",
        dc=14,
        risk_factor=-20,
        reward_value=15,
        type=ActionType.ESCAPE,
        logic="High-risk escape attempt",
    ),
    Choice(
        text="Search for anything useful",
        dc=8,
        risk_factor=-5,
        reward_value=8,
        type=ActionType.SEARCH,
        logic="Low-risk search option",
    ),
)

# Effects the story itself may hand out; the rest belong to the resolver
NARRATIVE_EFFECTS = frozenset({StatusEffect.BLEEDING, StatusEffect.EMPOWERED})


@dataclass
class TurnResult:
    """What the player sees after a turn."""
    turn_no: int
    story: str
    choices: list[Choice]
    state: GameState
    outcome_text: str = ""
    success: Optional[bool] = None
    game_over: bool = False
    ending: Optional[GameEnding] = None
    used_fallback: bool = False
    debug_info: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "turn_no": self.turn_no,
            "story": self.story,
            "choices": [c.to_dict() for c in self.choices],
            "gameState": self.state.to_dict(),
            "outcome_text": self.outcome_text,
            "success": self.success,
            "game_over": self.game_over,
            "ending": self.ending.value if self.ending else "",
            "used_fallback": self.used_fallback,
        }


def merge_generator_state(state: GameState, data: Optional[dict]) -> GameState:
    """
    Fold the generator's view of the world into the engine's state.

    Only story facts are taken: items, companions and environment. When the
    generator reports statusEffects, its list decides which of bleeding and
    empowered the player has; the other effects and every engine-owned
    number are kept as is.
    """
    if not data:
        return state

    changes = {}
    if isinstance(data.get("hasWeapon"), bool):
        changes["has_weapon"] = data["hasWeapon"]
    if isinstance(data.get("hasKey"), bool):
        changes["has_key"] = data["hasKey"]
    if isinstance(data.get("environmentalModifiers"), dict):
        changes["environmental_modifiers"] = EnvironmentalModifiers.from_dict(
            data["environmentalModifiers"]
        )
    if isinstance(data.get("companions"), list) and data["companions"]:
        changes["companions"] = tuple(
            Companion.from_dict(c) for c in data["companions"] if isinstance(c, dict)
        )

    if isinstance(data.get("statusEffects"), list):
        narrative = set()
        for raw in data["statusEffects"]:
            try:
                effect = StatusEffect(raw)
            except (TypeError, ValueError):
                continue
            if effect in NARRATIVE_EFFECTS:
                narrative.add(effect)
        effects = (state.status_effects - NARRATIVE_EFFECTS) | narrative
        if effects != state.status_effects:
            changes["status_effects"] = frozenset(effects)

    return replace(state, **changes) if changes else state


class SessionController:
    """
    Coordinates one game.

    Calls, in order: Resolver on the picked choice, the game-over evaluator
    on the result, and the storyteller for the next segment when the night
    goes on.
    """

    def __init__(
        self,
        story_teller: Optional[StoryTeller] = None,
        config: Optional[RulesConfig] = None,
        dice: Optional[DiceSource] = None,
        on_stage: Optional[Callable[[str], None]] = None,
    ):
        self.story_teller = story_teller
        self.config = config or RulesConfig()
        self.resolver = Resolver(self.config, dice)
        self.on_stage = on_stage
        self.reset()

    def _notify(self, stage: str):
        """Notify observer of current stage."""
        if self.on_stage:
            self.on_stage(stage)

    @property
    def started(self) -> bool:
        return self.state is not None

    def reset(self) -> None:
        """Discard the current game."""
        self.state: Optional[GameState] = None
        self.choices: list[Choice] = []
        self.messages: list[Message] = []
        self.story = ""
        self.ending: Optional[GameEnding] = None

    def new_game(self) -> TurnResult:
        """Start a fresh night and fetch the opening segment."""
        self.reset()
        self.state = initial_game_state(
            starting_score=self.config.starting_score,
            total_turns=self.config.total_turns,
            turns_per_phase=self.config.turns_per_phase,
        )
        self.messages.append(Message("user", OPENING_MESSAGE))
        logger.info("New game started (%s rules)", self.config.name)

        used_fallback = self._next_segment()
        return TurnResult(
            turn_no=self.state.progress.current_turn,
            story=self.story,
            choices=list(self.choices),
            state=self.state,
            used_fallback=used_fallback,
        )

    def choose(self, index: int) -> TurnResult:
        """
        Resolve the choice at index and move the night forward.

        Raises:
            SessionError: no game running, the game is over, or the index
                does not point at an offered choice
        """
        if not self.started:
            raise SessionError("No game in progress. Call new_game() first.")
        if self.ending is not None:
            raise SessionError(f"The game is over ({self.ending.value}).")
        if not 0 <= index < len(self.choices):
            raise SessionError(
                f"Choice {index + 1} is not available; pick 1-{len(self.choices)}."
            )

        choice = self.choices[index]
        modifiers = self.resolver.modifier_breakdown(self.state, choice)
        self._notify("Rolling")
        resolution = self.resolver.resolve(choice, self.state)
        self.state = resolution.new_game_state
        self.choices = []

        verb = "Successfully" if resolution.success else "Failed to"
        self.messages.append(Message(
            "user",
            f"I choose: {choice.text}. {verb} {choice.text.lower()}. {resolution.outcome_text}",
        ))

        verdict = check_game_over(self.state, self.config)
        debug_info = {
            "roll": resolution.roll.to_dict() if resolution.roll else None,
            "modifiers": modifiers,
            "consequences": resolution.consequences.to_dict(),
        }

        if verdict.is_over:
            self.ending = verdict.ending
            self.story = ending_message(verdict.ending)
            logger.info(
                "Game over on turn %d: %s (survival %d)",
                self.state.progress.current_turn, verdict.ending.value, self.state.survival_score,
            )
            return TurnResult(
                turn_no=self.state.progress.current_turn,
                story=self.story,
                choices=[],
                state=self.state,
                outcome_text=resolution.outcome_text,
                success=resolution.success,
                game_over=True,
                ending=verdict.ending,
                debug_info=debug_info,
            )

        used_fallback = self._next_segment()
        return TurnResult(
            turn_no=self.state.progress.current_turn,
            story=self.story,
            choices=list(self.choices),
            state=self.state,
            outcome_text=resolution.outcome_text,
            success=resolution.success,
            used_fallback=used_fallback,
            debug_info=debug_info,
        )

    def _next_segment(self) -> bool:
        """Fetch story and choices for the current state. Returns True on fallback."""
        self._notify("Writing the story")
        if self.story_teller is None:
            self._use_fallback()
            return True

        try:
            response = self.story_teller.generate(self.messages, self.state)
        except (StoryGenerationError, ChoiceCountError) as e:
            logger.warning("Storyteller failed (%s), using fallback segment", e)
            self._use_fallback()
            return True

        self.state = merge_generator_state(self.state, response.game_state)
        self.story = response.story
        self.choices = list(response.choices)
        self.messages.append(Message("assistant", json.dumps({
            "story": response.story,
            "choices": [c.to_dict() for c in response.choices],
        })))
        return False

    def _use_fallback(self) -> None:
        self.story = FALLBACK_STORY
        self.choices = list(FALLBACK_CHOICES)
        self.messages.append(Message("assistant", FALLBACK_STORY))

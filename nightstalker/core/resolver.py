"""
Resolver - Turns a chosen action and the current state into the next state.

One d20 roll per action, plus a circumstantial modifier. Everything after
the roll is deterministic: survival and tension deltas, stalker escalation,
status effects, counters and the turn advance.
"""

import logging
from dataclasses import replace
from typing import Optional

from .dice import DiceSource, RandomDice
from .errors import InvalidChoiceError
from .rules_config import RulesConfig
from .state import (
    ActionResolution,
    ActionType,
    Choice,
    Consequences,
    GameProgress,
    GameState,
    RollResult,
    StalkerPresence,
    StatusEffect,
)
from .validator import validate_choice

logger = logging.getLogger(__name__)


class Resolver:
    """
    Resolves a validated choice against a game state.

    Responsibilities:
    - Roll the d20 (through the injected dice source)
    - Sum and cap the circumstantial modifier
    - Apply survival, tension and status effect changes
    - Move the stalker one rung up or down the ladder
    - Track encounters and the consecutive failure streak
    - Advance the turn and recompute the time of night
    """

    def __init__(self, config: Optional[RulesConfig] = None, dice: Optional[DiceSource] = None):
        self.config = config or RulesConfig()
        self.dice = dice or RandomDice()

    def resolve(self, choice: Choice, state: GameState) -> ActionResolution:
        """
        Resolve one choice.

        The choice must already have been through the sanitizer; a choice
        that breaks the contract raises InvalidChoiceError. The input state
        is left untouched.
        """
        problems = validate_choice(choice)
        if problems:
            raise InvalidChoiceError(problems)

        roll = self.roll_check(choice, state)
        success = roll.success

        survival_delta = self._survival_delta(choice, success)
        tension = self._next_tension(state, choice, success)
        presence = self._next_presence(state.stalker_presence, success, tension)
        effects = self._next_status_effects(state.status_effects, choice, success)

        if StatusEffect.BLEEDING in effects:
            survival_delta -= self.config.bleeding_drain

        survival = self._clamp(state.survival_score + survival_delta, 0, self.config.score_max)

        encounter_count = state.encounter_count
        if choice.type == ActionType.COMBAT or state.stalker_presence == StalkerPresence.IMMINENT:
            encounter_count += 1

        failed_rolls = 0 if success else state.failed_rolls_count + 1

        progress = GameProgress.at_turn(
            state.progress.current_turn + 1,
            state.progress.total_turns,
            self.config.turns_per_phase,
        )

        new_state = replace(
            state,
            survival_score=survival,
            tension=tension,
            stalker_presence=presence,
            status_effects=effects,
            encounter_count=encounter_count,
            failed_rolls_count=failed_rolls,
            progress=progress,
        )

        consequences = Consequences(
            status_effects_gained=effects - state.status_effects,
            status_effects_lost=state.status_effects - effects,
            survival_change=survival - state.survival_score,
            tension_change=tension - state.tension,
        )

        logger.debug(
            "Turn %d %s (dc %d): rolled %d%+d=%d, survival %d->%d, tension %d->%d, stalker %s->%s",
            state.progress.current_turn, choice.type.value, choice.dc,
            roll.raw, roll.modifier, roll.total,
            state.survival_score, survival, state.tension, tension,
            state.stalker_presence.value, presence.value,
        )

        return ActionResolution(
            success=success,
            new_game_state=new_state,
            outcome_text=self.describe_roll(roll),
            roll=roll,
            consequences=consequences,
        )

    def roll_check(self, choice: Choice, state: GameState) -> RollResult:
        """Roll the d20 and compare roll + modifier against the choice's dc."""
        raw = self.dice.roll_d20()
        modifier = self.circumstantial_modifier(state, choice)
        total = raw + modifier
        success = total >= choice.dc
        margin = total - choice.dc

        if success:
            quality = "critical_success" if margin >= self.config.critical_margin else "success"
        else:
            quality = "critical_failure" if -margin >= self.config.critical_margin else "failure"

        return RollResult(
            raw=raw,
            modifier=modifier,
            total=total,
            dc=choice.dc,
            success=success,
            margin=margin,
            quality=quality,
        )

    def modifier_breakdown(self, state: GameState, choice: Choice) -> dict[str, int]:
        """Each circumstantial contribution by name. Zero entries are omitted."""
        cfg = self.config
        parts = {}

        if state.has_effect(StatusEffect.INJURED):
            parts["injured"] = cfg.injured_penalty
        if state.has_effect(StatusEffect.HIDDEN) and choice.type == ActionType.STEALTH:
            parts["hidden"] = cfg.hidden_stealth_bonus
        if state.has_effect(StatusEffect.EXPOSED):
            parts["exposed"] = cfg.exposed_penalty
        if state.has_effect(StatusEffect.EMPOWERED) and choice.type == ActionType.COMBAT:
            parts["empowered"] = cfg.empowered_combat_bonus

        if state.has_weapon and choice.type == ActionType.COMBAT:
            parts["weapon"] = cfg.weapon_combat_bonus

        if state.survival_score < cfg.critical_condition_threshold:
            parts["critical_condition"] = cfg.critical_condition_penalty

        parts["time_of_night"] = cfg.time_modifier(state.progress.time_of_night.value)

        if state.tension >= cfg.high_tension_threshold:
            parts["high_tension"] = cfg.high_tension_penalty

        parts["stalker"] = cfg.presence_modifier(state.stalker_presence.value)

        # Environment only ever hurts
        environment = self._clamp(state.environmental_modifiers.total, 0, cfg.environment_penalty_cap)
        parts["environment"] = -environment

        return {name: value for name, value in parts.items() if value}

    def circumstantial_modifier(self, state: GameState, choice: Choice) -> int:
        total = sum(self.modifier_breakdown(state, choice).values())
        return self._clamp(total, -self.config.modifier_cap, self.config.modifier_cap)

    def describe_roll(self, roll: RollResult) -> str:
        """Fixed-format summary, e.g. 'Success! (Rolled 15 + 0 = 15, needed 12)'."""
        headline = {
            "critical_success": "Critical success!",
            "success": "Success!",
            "failure": "Failure!",
            "critical_failure": "Critical failure!",
        }[roll.quality]
        sign = "+" if roll.modifier >= 0 else "-"
        return (
            f"{headline} (Rolled {roll.raw} {sign} {abs(roll.modifier)} = {roll.total}, "
            f"needed {roll.dc})"
        )

    def _survival_delta(self, choice: Choice, success: bool) -> int:
        if success:
            return self.config.success_reward(choice.dc, choice.reward_value)
        return self.config.failure_penalty(choice.risk_factor)

    def _next_tension(self, state: GameState, choice: Choice, success: bool) -> int:
        cfg = self.config
        delta = 0
        if not success:
            delta += cfg.tension_on_failure
        if choice.type == ActionType.COMBAT or state.stalker_presence == StalkerPresence.IMMINENT:
            delta += cfg.tension_on_encounter
        if success and choice.type == ActionType.STEALTH:
            delta += cfg.tension_on_stealth_success
        return self._clamp(state.tension + delta, 0, cfg.tension_max)

    def _next_presence(self, presence: StalkerPresence, success: bool, tension: int) -> StalkerPresence:
        if not success or tension >= self.config.escalation_tension_threshold:
            return presence.escalate()
        if self.config.deescalate_on_success:
            return presence.deescalate()
        return presence

    def _next_status_effects(self, effects: frozenset, choice: Choice, success: bool) -> frozenset:
        updated = set(effects)

        if success:
            if choice.type == ActionType.ESCAPE:
                updated.discard(StatusEffect.EXPOSED)
            if choice.type == ActionType.STEALTH:
                updated.add(StatusEffect.HIDDEN)
                updated.discard(StatusEffect.EXPOSED)
        else:
            if choice.type == ActionType.COMBAT:
                updated.add(StatusEffect.INJURED)
            if choice.type == ActionType.STEALTH:
                updated.add(StatusEffect.EXPOSED)
                updated.discard(StatusEffect.HIDDEN)

        # Empowerment is spent on the fight it helped with
        if choice.type == ActionType.COMBAT:
            updated.discard(StatusEffect.EMPOWERED)

        return frozenset(updated)

    @staticmethod
    def _clamp(value: int, low: int, high: int) -> int:
        return max(low, min(high, value))


def resolve_action(
    choice: Choice,
    state: GameState,
    dice: Optional[DiceSource] = None,
    config: Optional[RulesConfig] = None,
) -> ActionResolution:
    """Convenience function to resolve a single choice."""
    return Resolver(config, dice).resolve(choice, state)

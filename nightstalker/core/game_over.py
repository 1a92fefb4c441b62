"""
Game-Over Evaluator - Classifies a state as ongoing or one of the endings.

Checked once after every resolved turn. Several endings can be true at the
same time; the first match in this order wins:

  1. death     survival has run out
  2. caught    stalker is on top of an unarmed player, or the player
               keeps failing while it closes in
  3. victory / survived   the night is over
  4. escaped   the player holds the key and is fit enough to run
"""

from dataclasses import dataclass
from typing import Optional

from .rules_config import RulesConfig
from .state import GameEnding, GameState, StalkerPresence


ENDING_MESSAGES = {
    GameEnding.DEATH: "Your survival score reached zero. Game Over.",
    GameEnding.CAUGHT: "The Stalker caught up with you. Game Over.",
    GameEnding.VICTORY: "You defeated The Stalker! Victory!",
    GameEnding.SURVIVED: "You survived until dawn! Victory!",
    GameEnding.ESCAPED: "You unlocked your way out and escaped into the night! Victory!",
}


@dataclass(frozen=True)
class GameOverResult:
    is_over: bool
    ending: Optional[GameEnding] = None

    @property
    def is_win(self) -> bool:
        return self.ending in (GameEnding.VICTORY, GameEnding.SURVIVED, GameEnding.ESCAPED)

    def to_dict(self) -> dict:
        return {
            "isOver": self.is_over,
            "ending": self.ending.value if self.ending else "",
        }


NOT_OVER = GameOverResult(is_over=False)


def check_game_over(state: Optional[GameState], config: Optional[RulesConfig] = None) -> GameOverResult:
    """Classify a state. Pure and idempotent; a missing state is not over."""
    if state is None:
        return NOT_OVER
    config = config or RulesConfig()

    if state.survival_score <= 0:
        return GameOverResult(True, GameEnding.DEATH)

    if state.stalker_presence == StalkerPresence.IMMINENT and not state.has_weapon:
        if config.caught_tension_threshold is None or state.tension >= config.caught_tension_threshold:
            return GameOverResult(True, GameEnding.CAUGHT)

    if (state.stalker_presence == StalkerPresence.CLOSING_IN
            and state.failed_rolls_count >= config.consecutive_failures_limit):
        return GameOverResult(True, GameEnding.CAUGHT)

    if state.progress.current_turn >= state.progress.total_turns:
        if state.has_weapon and state.survival_score >= config.victory_threshold:
            return GameOverResult(True, GameEnding.VICTORY)
        return GameOverResult(True, GameEnding.SURVIVED)

    if (state.has_key
            and state.survival_score >= config.escape_threshold
            and state.encounter_count >= config.escape_min_encounters):
        return GameOverResult(True, GameEnding.ESCAPED)

    return NOT_OVER


def ending_message(ending: Optional[GameEnding]) -> str:
    """Closing line for an ending; empty while the game goes on."""
    if ending is None:
        return ""
    return ENDING_MESSAGES[ending]

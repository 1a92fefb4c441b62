"""
State Model - Typed shape of game state, choices and resolutions.

Everything here is a value object. The resolver never mutates a GameState;
it builds a new one with dataclasses.replace(). Wire forms (to_dict/from_dict)
use the camelCase keys the narrative generator speaks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ActionType(str, Enum):
    """Kind of action a choice represents."""
    COMBAT = "combat"
    STEALTH = "stealth"
    ESCAPE = "escape"
    SEARCH = "search"
    INTERACT = "interact"


class StalkerPresence(str, Enum):
    """Threat ladder, ordered from furthest to closest."""
    DISTANT = "distant"
    HUNTING = "hunting"
    CLOSING_IN = "closingIn"
    IMMINENT = "imminent"

    @property
    def rank(self) -> int:
        return _PRESENCE_LADDER.index(self)

    def escalate(self) -> "StalkerPresence":
        """One rung closer. Imminent stays imminent."""
        return _PRESENCE_LADDER[min(self.rank + 1, len(_PRESENCE_LADDER) - 1)]

    def deescalate(self) -> "StalkerPresence":
        """One rung further away. Distant stays distant."""
        return _PRESENCE_LADDER[max(self.rank - 1, 0)]


_PRESENCE_LADDER = (
    StalkerPresence.DISTANT,
    StalkerPresence.HUNTING,
    StalkerPresence.CLOSING_IN,
    StalkerPresence.IMMINENT,
)


class StatusEffect(str, Enum):
    INJURED = "injured"      # -2 to all rolls
    HIDDEN = "hidden"        # +2 to stealth rolls
    EXPOSED = "exposed"      # -2 to all rolls
    BLEEDING = "bleeding"    # drains survival every turn
    EMPOWERED = "empowered"  # +2 to the next combat roll


class TimeOfNight(str, Enum):
    DUSK = "dusk"
    MIDNIGHT = "midnight"
    LATE_NIGHT = "lateNight"
    NEAR_DAWN = "nearDawn"
    DAWN = "dawn"


class GameEnding(str, Enum):
    DEATH = "death"
    CAUGHT = "caught"
    VICTORY = "victory"
    SURVIVED = "survived"
    ESCAPED = "escaped"


class CompanionStatus(str, Enum):
    ALIVE = "alive"
    INJURED = "injured"
    DEAD = "dead"
    MISSING = "missing"


def _coerce_enum(enum_cls, value, default):
    """Map a raw wire value onto an enum member, falling back to default."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        return default


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_int(value, default: int = 0) -> int:
    """Whole number from a wire value; anything unusable gives default."""
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


@dataclass(frozen=True)
class EnvironmentalModifiers:
    """Secondary roll modifiers. Higher values mean worse conditions."""
    darkness: int = 0
    noise: int = 0
    weather: int = 0

    @property
    def total(self) -> int:
        return self.darkness + self.noise + self.weather

    def to_dict(self) -> dict:
        return {"darkness": self.darkness, "noise": self.noise, "weather": self.weather}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EnvironmentalModifiers":
        data = data or {}
        return cls(
            darkness=_as_int(data.get("darkness")),
            noise=_as_int(data.get("noise")),
            weather=_as_int(data.get("weather")),
        )


@dataclass(frozen=True)
class Companion:
    """A named NPC travelling with the player. Flavor state only."""
    name: str
    status: CompanionStatus = CompanionStatus.ALIVE
    relationship: int = 50
    speciality: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "status": self.status.value,
            "relationship": self.relationship,
        }
        if self.speciality:
            data["speciality"] = self.speciality
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Companion":
        return cls(
            name=str(data.get("name", "Unknown")),
            status=_coerce_enum(CompanionStatus, data.get("status"), CompanionStatus.ALIVE),
            relationship=max(0, min(100, _as_int(data.get("relationship"), 50))),
            speciality=data.get("speciality"),
        )


@dataclass(frozen=True)
class GameProgress:
    """Turn counter paired with its derived phase label."""
    current_turn: int = 1
    total_turns: int = 30
    time_of_night: TimeOfNight = TimeOfNight.DUSK

    @classmethod
    def at_turn(cls, current_turn: int, total_turns: int = 30,
                turns_per_phase: int = 6) -> "GameProgress":
        """Build progress with the phase recomputed from the turn."""
        from .timeline import time_of_night
        return cls(
            current_turn=current_turn,
            total_turns=total_turns,
            time_of_night=time_of_night(current_turn, turns_per_phase),
        )

    def to_dict(self) -> dict:
        return {
            "currentTurn": self.current_turn,
            "totalTurns": self.total_turns,
            "timeOfNight": self.time_of_night.value,
        }


@dataclass(frozen=True)
class GameState:
    """
    Complete game state between turns.

    The session controller owns the single live copy and replaces it after
    every resolved turn.
    """
    survival_score: int = 100
    tension: int = 0
    has_weapon: bool = False
    has_key: bool = False
    encounter_count: int = 0
    failed_rolls_count: int = 0
    stalker_presence: StalkerPresence = StalkerPresence.DISTANT
    status_effects: frozenset = field(default_factory=frozenset)
    environmental_modifiers: EnvironmentalModifiers = field(default_factory=EnvironmentalModifiers)
    companions: tuple = ()
    progress: GameProgress = field(default_factory=GameProgress)

    def has_effect(self, effect: StatusEffect) -> bool:
        return effect in self.status_effects

    @property
    def inventory(self) -> list[str]:
        items = []
        if self.has_weapon:
            items.append("weapon")
        if self.has_key:
            items.append("key")
        return items

    def to_dict(self) -> dict:
        return {
            "survivalScore": self.survival_score,
            "tension": self.tension,
            "hasWeapon": self.has_weapon,
            "hasKey": self.has_key,
            "encounterCount": self.encounter_count,
            "failedRollsCount": self.failed_rolls_count,
            "stalkerPresence": self.stalker_presence.value,
            "statusEffects": sorted(e.value for e in self.status_effects),
            "environmentalModifiers": self.environmental_modifiers.to_dict(),
            "companions": [c.to_dict() for c in self.companions],
            "progress": self.progress.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict, turns_per_phase: int = 6) -> "GameState":
        """
        Build a GameState from its wire form.

        Missing keys take initial values and unknown status effects are
        dropped. The phase label is always recomputed from the turn.
        """
        defaults = cls()
        effects = set()
        for raw in data.get("statusEffects", []) or []:
            effect = _coerce_enum(StatusEffect, raw, None)
            if effect is not None:
                effects.add(effect)

        progress_data = data.get("progress") or {}
        progress = GameProgress.at_turn(
            current_turn=max(1, int(progress_data.get("currentTurn", 1) or 1)),
            total_turns=int(progress_data.get("totalTurns", defaults.progress.total_turns)
                            or defaults.progress.total_turns),
            turns_per_phase=turns_per_phase,
        )

        return cls(
            survival_score=int(data.get("survivalScore", defaults.survival_score)),
            tension=int(data.get("tension", defaults.tension)),
            has_weapon=bool(data.get("hasWeapon", False)),
            has_key=bool(data.get("hasKey", False)),
            encounter_count=int(data.get("encounterCount", 0) or 0),
            failed_rolls_count=int(data.get("failedRollsCount", 0) or 0),
            stalker_presence=_coerce_enum(
                StalkerPresence, data.get("stalkerPresence"), StalkerPresence.DISTANT
            ),
            status_effects=frozenset(effects),
            environmental_modifiers=EnvironmentalModifiers.from_dict(
                data.get("environmentalModifiers")
            ),
            companions=tuple(Companion.from_dict(c) for c in data.get("companions", []) or []),
            progress=progress,
        )


@dataclass(frozen=True)
class ChoiceRequirements:
    """Advisory gates for the narrative layer. The resolver ignores them."""
    item: Optional[str] = None
    min_survival: Optional[int] = None
    status: tuple = ()

    def to_dict(self) -> dict:
        data: dict[str, Any] = {}
        if self.item:
            data["item"] = self.item
        if self.min_survival is not None:
            data["minSurvival"] = self.min_survival
        if self.status:
            data["status"] = [s.value for s in self.status]
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ChoiceRequirements"]:
        if not data or not isinstance(data, dict):
            return None
        item = data.get("item")
        if item not in ("weapon", "key"):
            item = None
        min_survival = data.get("minSurvival")
        if not isinstance(min_survival, int) or isinstance(min_survival, bool):
            min_survival = None
        status = tuple(
            s for s in (_coerce_enum(StatusEffect, raw, None) for raw in _as_list(data.get("status")))
            if s is not None
        )
        return cls(item=item, min_survival=min_survival, status=status)


@dataclass(frozen=True)
class Choice:
    """One option offered to the player. Consumed exactly once."""
    text: str
    dc: int
    risk_factor: int
    reward_value: int
    type: ActionType
    logic: str = ""
    requirements: Optional[ChoiceRequirements] = None

    def to_dict(self) -> dict:
        data = {
            "text": self.text,
            "dc": self.dc,
            "riskFactor": self.risk_factor,
            "rewardValue": self.reward_value,
            "type": self.type.value,
        }
        if self.logic:
            data["logic"] = self.logic
        if self.requirements:
            data["requirements"] = self.requirements.to_dict()
        return data


@dataclass(frozen=True)
class RollResult:
    """Result of a d20 check."""
    raw: int
    modifier: int
    total: int
    dc: int
    success: bool
    margin: int   # total - dc
    quality: str  # 'critical_failure', 'failure', 'success', 'critical_success'

    def to_dict(self) -> dict:
        return {
            "raw": self.raw,
            "modifier": self.modifier,
            "total": self.total,
            "dc": self.dc,
            "success": self.success,
            "margin": self.margin,
            "quality": self.quality,
        }


@dataclass(frozen=True)
class Consequences:
    """What a single resolution changed."""
    status_effects_gained: frozenset = frozenset()
    status_effects_lost: frozenset = frozenset()
    survival_change: int = 0
    tension_change: int = 0

    def to_dict(self) -> dict:
        return {
            "statusEffectsGained": sorted(e.value for e in self.status_effects_gained),
            "statusEffectsLost": sorted(e.value for e in self.status_effects_lost),
            "survivalChange": self.survival_change,
            "tensionChange": self.tension_change,
        }


@dataclass(frozen=True)
class ActionResolution:
    """Output of the resolver for one chosen action."""
    success: bool
    new_game_state: GameState
    outcome_text: str
    roll: Optional[RollResult] = None
    consequences: Consequences = field(default_factory=Consequences)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "newGameState": self.new_game_state.to_dict(),
            "outcomeText": self.outcome_text,
            "roll": self.roll.to_dict() if self.roll else None,
            "consequences": self.consequences.to_dict(),
        }


DEFAULT_COMPANIONS = (
    Companion(name="Alex", relationship=80, speciality="combat"),
    Companion(name="Jamie", relationship=70, speciality="technical"),
    Companion(name="Casey", relationship=75, speciality="stealth"),
)


def initial_game_state(
    starting_score: int = 100,
    total_turns: int = 30,
    turns_per_phase: int = 6,
    companions: tuple = DEFAULT_COMPANIONS,
) -> GameState:
    """Fresh state for a new night: full health, stalker distant, turn 1."""
    return GameState(
        survival_score=starting_score,
        companions=tuple(companions),
        progress=GameProgress.at_turn(1, total_turns, turns_per_phase),
    )

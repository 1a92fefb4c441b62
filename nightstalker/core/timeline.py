"""Turn/Time translator: maps the turn counter onto a phase of the night."""

from .state import TimeOfNight

PHASES = (
    TimeOfNight.DUSK,
    TimeOfNight.MIDNIGHT,
    TimeOfNight.LATE_NIGHT,
    TimeOfNight.NEAR_DAWN,
    TimeOfNight.DAWN,
)

TURNS_PER_PHASE = 6


def time_of_night(current_turn: int, turns_per_phase: int = TURNS_PER_PHASE) -> TimeOfNight:
    """
    Phase for a turn. Fixed-width phases, turns start at 1.

    Turns past the last boundary stay at dawn; turns below 1 read as dusk.
    """
    if turns_per_phase < 1:
        raise ValueError("turns_per_phase must be at least 1")
    if current_turn < 1:
        return PHASES[0]
    index = (current_turn - 1) // turns_per_phase
    return PHASES[min(index, len(PHASES) - 1)]


def turns_until_dawn(current_turn: int, total_turns: int) -> int:
    return max(0, total_turns - current_turn)

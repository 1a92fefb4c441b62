"""
Dice - The only source of randomness in the engine.

The resolver takes any object with a roll_d20() method, so tests can hand
in a fixed sequence and replays can hand in a seeded source.
"""

import random
from typing import Iterable, Optional, Protocol, runtime_checkable


@runtime_checkable
class DiceSource(Protocol):
    """Anything that can roll a d20."""

    def roll_d20(self) -> int:
        ...


class RandomDice:
    """d20 backed by random.Random. Pass a seed for reproducible games."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._random = random.Random(seed)

    def roll_d20(self) -> int:
        return self._random.randint(1, 20)


class FixedDice:
    """
    Replays a fixed sequence of rolls.

    Raises IndexError once the sequence runs out unless cycle=True.
    """

    def __init__(self, rolls: Iterable[int], cycle: bool = False):
        self.rolls = list(rolls)
        if not self.rolls:
            raise ValueError("FixedDice needs at least one roll")
        for value in self.rolls:
            if not 1 <= value <= 20:
                raise ValueError(f"d20 roll out of range: {value}")
        self.cycle = cycle
        self.position = 0

    def roll_d20(self) -> int:
        if self.position >= len(self.rolls):
            if not self.cycle:
                raise IndexError("FixedDice exhausted")
            self.position = 0
        value = self.rolls[self.position]
        self.position += 1
        return value

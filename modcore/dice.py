# modcore/dice.py
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional, Union


Number = Union[int, float]


@dataclass(frozen=True)
class RollResult:
    """
    Standard roll result you can log/serialize later.
    - total: final value after every term is applied
    - rolls: individual die results, in formula order (empty for constant-only expressions)
    - modifier: flat part of the total (everything that is not a die)
    - notation: the expression that produced it (e.g. "1d20+@skills.acr.mod")
    """

    total: Number
    rolls: List[int] = field(default_factory=list)
    modifier: Number = 0
    notation: str = ""


class Dice:
    """
    Source of die faces for formula dice terms. Seed it (or hand it an rng)
    for reproducible rolls in tests and on the command line.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def roll_die(self, sides: int) -> int:
        """Roll 1..sides."""
        if sides <= 0:
            raise ValueError("sides must be > 0")
        return self._rng.randint(1, sides)

    def roll_many(self, num_dice: int, sides: int) -> List[int]:
        if num_dice < 0:
            raise ValueError("num_dice must be >= 0")
        if num_dice > 0 and sides <= 0:
            raise ValueError("sides must be > 0 when num_dice > 0")
        return [self.roll_die(sides) for _ in range(num_dice)]

    @staticmethod
    def format_roll(result: RollResult) -> str:
        """
        Friendly string for logs.
        Examples:
          - "1d20 + 3 => [12] +3 = 15"
          - "1d20 + 1d4[Bless] => [17, 2] = 19"
        """
        rolls_part = f"{result.rolls}"
        mod = result.modifier
        if mod == 0:
            return f"{result.notation} => {rolls_part} = {result.total}".strip()
        sign = "+" if mod > 0 else "-"
        return f"{result.notation} => {rolls_part} {sign}{abs(mod)} = {result.total}".strip()


# Convenience singleton for callers that don't care about seeding.
DEFAULT_DICE = Dice()

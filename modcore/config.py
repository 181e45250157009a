# modcore/config.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Tuple


def generate_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ModifierConfig:
    """
    Centralized rules configuration. These are defaults; callers can override
    by building their own instance and passing it down.

    energy_damage_types / kinetic_damage_types:
      - the keys a modifier's damage section can flag
    stacking_types:
      - bonus types whose modifiers always add together
    max_dice / max_sides / max_depth / max_formula_length:
      - guardrails for formula evaluation (user-entered text)
    """

    energy_damage_types: Tuple[str, ...] = ("acid", "cold", "electricity", "fire", "sonic")
    kinetic_damage_types: Tuple[str, ...] = ("bludgeoning", "piercing", "slashing")

    stacking_types: Tuple[str, ...] = ("untyped",)

    max_dice: int = 100
    max_sides: int = 1000
    max_depth: int = 8
    max_formula_length: int = 500

    id_factory: Callable[[], str] = field(default=generate_id, repr=False, compare=False)

    @property
    def damage_types(self) -> Tuple[str, ...]:
        return self.energy_damage_types + self.kinetic_damage_types


DEFAULT_CONFIG = ModifierConfig()

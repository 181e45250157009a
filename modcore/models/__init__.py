# modcore/models/__init__.py
from __future__ import annotations

from .types import (
    DAMAGE_SECTION,
    LIMIT_TO_CHOICES,
    MODIFIER_TYPE_CHOICES,
    SUBTAB_CHOICES,
    BonusType,
    EffectType,
    LimitTo,
    ModifierType,
    Subtab,
)
from .modifier import DamageSection, Modifier, has_damage_section_data
from .events import StackEntry, StackResult

__all__ = [
    "BonusType",
    "EffectType",
    "ModifierType",
    "DAMAGE_SECTION",
    "MODIFIER_TYPE_CHOICES",
    "Subtab",
    "SUBTAB_CHOICES",
    "LimitTo",
    "LIMIT_TO_CHOICES",
    "DamageSection",
    "Modifier",
    "has_damage_section_data",
    "StackEntry",
    "StackResult",
]

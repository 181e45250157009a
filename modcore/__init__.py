# modcore/__init__.py
from __future__ import annotations

from .config import DEFAULT_CONFIG, ModifierConfig
from .core import ModifierEngine
from .errors import (
    FormulaError,
    ModcoreError,
    ModifierLoadError,
    ModifierValidationError,
    NonDeterministicFormulaError,
)
from .formula import Formula
from .host import Actor, Item, Token
from .models import BonusType, DamageSection, EffectType, Modifier, ModifierType, StackResult
from .rules import StackingRules

__all__ = [
    "ModifierEngine",
    "ModifierConfig",
    "DEFAULT_CONFIG",
    "Modifier",
    "DamageSection",
    "BonusType",
    "EffectType",
    "ModifierType",
    "StackResult",
    "StackingRules",
    "Formula",
    "Actor",
    "Item",
    "Token",
    "ModcoreError",
    "ModifierValidationError",
    "FormulaError",
    "NonDeterministicFormulaError",
    "ModifierLoadError",
]

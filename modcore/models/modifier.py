# modcore/models/modifier.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import DEFAULT_CONFIG, ModifierConfig
from ..dice import Dice, RollResult
from ..errors import FormulaError, ModifierValidationError
from ..formula import Formula
from .types import (
    LIMIT_TO_CHOICES,
    MODIFIER_TYPE_CHOICES,
    SUBTAB_CHOICES,
    BonusType,
    EffectType,
    ModifierType,
)

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

# wire key -> attribute name, in serialization order
WIRE_KEYS: Dict[str, str] = {
    "_id": "id",
    "name": "name",
    "modifier": "modifier",
    "max": "max",
    "type": "type",
    "modifierType": "modifier_type",
    "effectType": "effect_type",
    "valueAffected": "value_affected",
    "enabled": "enabled",
    "source": "source",
    "notes": "notes",
    "subtab": "subtab",
    "condition": "condition",
    "damage": "damage",
    "limitTo": "limit_to",
}

_STRING_KEYS = ("_id", "name", "modifier", "valueAffected", "source", "notes", "condition")


@dataclass
class DamageSection:
    """
    Optional damage sub-section: which damage group the bonus joins and which
    damage types it is restricted to. One flag per configured damage type.
    """

    damage_group: Optional[int] = None
    damage_types: Dict[str, bool] = field(default_factory=dict)

    @property
    def flagged(self) -> List[str]:
        return [k for k, v in self.damage_types.items() if v]

    def to_dict(self) -> JsonDict:
        return {"damageGroup": self.damage_group, "damageTypes": dict(self.damage_types)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], config: ModifierConfig = DEFAULT_CONFIG) -> "DamageSection":
        raw_types = data.get("damageTypes") or {}
        if not isinstance(raw_types, Mapping):
            raise ModifierValidationError([f"damage.damageTypes must be an object, got {type(raw_types).__name__}"])
        damage_types = {key: bool(raw_types.get(key, False)) for key in config.damage_types}
        return cls(damage_group=data.get("damageGroup"), damage_types=damage_types)


def _cast_bool(value: Any) -> bool:
    """Host boolean cast: strings are true only when "true", containers are false."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    if isinstance(value, (Mapping, list, tuple)):
        return False
    return bool(value)


def _cast_int(value: Any) -> Any:
    """Whole numbers written as strings or floats become ints; anything else is left for validation."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def has_damage_section_data(obj: Union["Modifier", Mapping[str, Any], None]) -> bool:
    """
    Tests whether a damage section exists on the modifier (instance or raw dict):
    there must be a damage section and at least one of its damage types set.
    """
    if obj is None:
        return False
    damage = obj.get("damage") if isinstance(obj, Mapping) else obj.damage
    if not damage:
        return False
    if isinstance(damage, DamageSection):
        types = damage.damage_types
    elif isinstance(damage, Mapping):
        types = damage.get("damageTypes") or {}
    else:
        return False
    return any(bool(v) for v in types.values())


@dataclass
class Modifier:
    """
    A single named adjustment to one statistic.

    name:           only useful for identifying the modifier
    modifier:       the value to modify with, a constant ("2") or a formula ("1d4", "@abilities.str.mod")
    type:           bonus type, used to decide whether it stacks
    modifier_type:  constant (no dice) or formula (may roll dice)
    effect_type:    the category of things modified by this value
    value_affected: the specific statistic inside that category ("" = all of them)
    enabled:        whether the modifier is active
    source:         where it comes from (an item, an ability, ...)
    notes:          free-form HTML notes
    subtab:         which sheet subtab lists it
    condition:      the condition, if any, this modifier belongs to
    damage:         damage sub-section for damage-section modifiers
    limit_to:       on an item, limit the effect to that item ("parent") or its contents ("container")

    parent is the owning actor or item (see modcore.host). max is derived: it
    is recomputed from `modifier` and the parent's roll data on every
    initialize() and never trusted from input.
    """

    id: str = ""
    name: str = "New Modifier"
    modifier: str = "0"
    max: int = 0
    type: BonusType = BonusType.UNTYPED
    modifier_type: str = ModifierType.CONSTANT
    effect_type: EffectType = EffectType.SKILL
    value_affected: str = ""
    enabled: bool = False
    source: str = ""
    notes: str = ""
    subtab: str = "misc"
    condition: str = ""
    damage: Optional[DamageSection] = None
    limit_to: Optional[str] = None

    parent: Any = field(default=None, repr=False, compare=False)
    global_modifier: bool = field(default=False, compare=False)
    config: ModifierConfig = field(default=DEFAULT_CONFIG, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = self.config.id_factory()
        if isinstance(self.modifier, (int, float)) and not isinstance(self.modifier, bool):
            self.modifier = str(self.modifier)
        if isinstance(self.damage, Mapping):
            self.damage = DamageSection.from_dict(self.damage, self.config)
        self._validate()
        self.initialize()

    # --- Construction ---

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        parent: Any = None,
        *,
        global_modifier: bool = False,
        config: ModifierConfig = DEFAULT_CONFIG,
    ) -> "Modifier":
        source = cls.initialize_source(data, config)
        source = cls.clean_data(source, config)
        kwargs = cls._kwargs_from_source(source, config)
        return cls(parent=parent, global_modifier=global_modifier, config=config, **kwargs)

    @staticmethod
    def initialize_source(data: Mapping[str, Any], config: ModifierConfig = DEFAULT_CONFIG) -> JsonDict:
        """Copy the raw data and settle the id: `_id`, else `id`, else a fresh one."""
        source = dict(data)
        source["_id"] = source.get("_id") or source.get("id") or config.id_factory()
        source.pop("id", None)
        return source

    @staticmethod
    def clean_data(source: Mapping[str, Any], config: ModifierConfig = DEFAULT_CONFIG) -> JsonDict:
        """
        Remove empty optional data:
          - damage becomes None unless at least one damage type is flagged
          - a falsy limitTo becomes None
          - numbers in text fields (modifier, name, source...) become strings
          - enabled is cast to a bool; whole-number max and damageGroup to ints
          - keys outside the schema (e.g. legacy "container") are dropped
        """
        cleaned: JsonDict = {}
        for key, value in source.items():
            if isinstance(value, DamageSection):
                value = value.to_dict()
            if key in WIRE_KEYS:
                cleaned[key] = value
            else:
                logger.debug("Dropping unknown modifier key %r", key)

        damage = cleaned.get("damage")
        if isinstance(damage, Mapping):
            # Normalize first so flags for unconfigured damage types don't count.
            damage = DamageSection.from_dict(damage, config).to_dict()
            damage["damageGroup"] = _cast_int(damage["damageGroup"])
        cleaned["damage"] = damage if has_damage_section_data({"damage": damage}) else None

        if not cleaned.get("limitTo"):
            cleaned["limitTo"] = None

        for key in _STRING_KEYS:
            value = cleaned.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                cleaned[key] = str(value)
        if "enabled" in cleaned:
            cleaned["enabled"] = _cast_bool(cleaned["enabled"])
        if "max" in cleaned:
            cleaned["max"] = _cast_int(cleaned["max"])

        return cleaned

    @staticmethod
    def _kwargs_from_source(source: Mapping[str, Any], config: ModifierConfig) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        for key, attr in WIRE_KEYS.items():
            if key not in source:
                continue
            value = source[key]
            if attr == "damage" and value is not None:
                value = DamageSection.from_dict(value, config)
            kwargs[attr] = value
        return kwargs

    # --- Validation ---

    def _validate(self) -> None:
        errors: List[str] = []

        if not isinstance(self.name, str) or not self.name.strip():
            errors.append("name may not be blank")
        if not isinstance(self.modifier, str):
            errors.append(f"modifier must be a string or number, got {type(self.modifier).__name__}")
        if isinstance(self.max, float) and self.max.is_integer():
            self.max = int(self.max)
        if isinstance(self.max, bool) or not isinstance(self.max, int):
            errors.append(f"max must be an integer, got {self.max!r}")

        bonus = BonusType.parse(self.type)
        if bonus is None:
            errors.append(f"type {self.type!r} is not one of {BonusType.values()}")
        else:
            self.type = bonus

        if self.modifier_type not in MODIFIER_TYPE_CHOICES:
            errors.append(f"modifierType {self.modifier_type!r} is not one of {list(MODIFIER_TYPE_CHOICES)}")
        else:
            self.modifier_type = ModifierType.parse(self.modifier_type) or self.modifier_type

        effect = EffectType.parse(self.effect_type)
        if effect is None:
            errors.append(f"effectType {self.effect_type!r} is not a known effect type")
        else:
            self.effect_type = effect

        for attr in ("value_affected", "source", "notes", "condition"):
            value = getattr(self, attr)
            if value is None:
                setattr(self, attr, "")
            elif not isinstance(value, str):
                errors.append(f"{attr} must be a string, got {type(value).__name__}")

        if not isinstance(self.enabled, bool):
            errors.append(f"enabled must be a boolean, got {self.enabled!r}")
        if self.subtab not in SUBTAB_CHOICES:
            errors.append(f"subtab {self.subtab!r} is not one of {list(SUBTAB_CHOICES)}")
        if self.limit_to is not None and self.limit_to not in LIMIT_TO_CHOICES:
            errors.append(f"limitTo {self.limit_to!r} is not one of {list(LIMIT_TO_CHOICES)}")

        if self.damage is not None and not isinstance(self.damage, DamageSection):
            errors.append(f"damage must be an object, got {type(self.damage).__name__}")
        elif self.damage is not None:
            group = self.damage.damage_group
            if group is not None and (isinstance(group, bool) or not isinstance(group, int)):
                errors.append(f"damage.damageGroup must be an integer or null, got {group!r}")

        if errors:
            raise ModifierValidationError(errors, name=self.name if isinstance(self.name, str) else None)

    # --- Derived data ---

    def roll_data(self) -> Any:
        """Data formulas resolve @references against: the parent's roll data."""
        parent = self.parent
        if parent is None:
            return {}
        if callable(getattr(parent, "roll_data", None)):
            return parent.roll_data()
        return getattr(parent, "system", None) or {}

    def initialize(self) -> None:
        """
        Recompute max from the current value and the parent's data. A formula
        that does not evaluate leaves max at 0; dice count at their highest face.
        """
        try:
            result = Formula(self.modifier, self.roll_data(), config=self.config).evaluate(maximize=True)
            self.max = int(math.floor(result.total))
        except FormulaError as e:
            logger.debug("Modifier %r (%s): cannot evaluate %r: %s", self.name, self.id, self.modifier, e)
            self.max = 0

    def formula(self, roll_data: Any = None) -> Formula:
        data = roll_data if roll_data is not None else self.roll_data()
        return Formula(self.modifier, data, config=self.config)

    def evaluate(self, dice: Optional[Dice] = None, roll_data: Any = None) -> RollResult:
        """Roll (or compute) the current value. Constant modifiers never roll."""
        f = self.formula(roll_data)
        if self.is_formula:
            return f.roll(dice)
        return f.evaluate(strict=True)

    @property
    def is_formula(self) -> bool:
        return self.modifier_type == ModifierType.FORMULA

    @property
    def is_constant(self) -> bool:
        return self.modifier_type == ModifierType.CONSTANT

    @property
    def roll_part(self) -> str:
        """This modifier as a labelled roll term, e.g. "1d4[Bless]"."""
        label = self.name.replace("[", "").replace("]", "")
        return f"{self.modifier}[{label}]"

    @property
    def has_damage_section(self) -> bool:
        return has_damage_section_data(self)

    def applies_to(self, effect_type: Union[EffectType, str], value_affected: Optional[str] = None) -> bool:
        if self.effect_type != effect_type:
            return False
        if not self.value_affected:
            return True
        return self.value_affected == value_affected

    # --- Parent accessors ---

    @property
    def actor(self) -> Any:
        """The containing actor: the parent itself, or the parent item's owner."""
        parent = self.parent
        if parent is None:
            return None
        if getattr(parent, "document_name", None) == "Actor":
            return parent
        return getattr(parent, "actor", None)

    @property
    def item(self) -> Any:
        parent = self.parent
        if parent is not None and getattr(parent, "document_name", None) == "Item":
            return parent
        return None

    @property
    def token(self) -> Any:
        """The actor's token for token actors, else all of the actor's active tokens."""
        actor = self.actor
        if actor is None:
            return None
        if actor.is_token:
            return actor.token
        return actor.get_active_tokens(True, True)

    # --- Serialization ---

    def to_object(self, source: bool = True) -> JsonDict:
        """
        source=True keeps stored/exported modifiers minimal and clean: no
        container information, no damage section unless one is set, no
        limitTo unless one is set. source=False serializes every field.
        """
        obj: JsonDict = {}
        for key, attr in WIRE_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, DamageSection):
                value = value.to_dict()
            elif isinstance(value, Enum):
                value = value.value
            obj[key] = value

        if source:
            if not self.has_damage_section:
                obj.pop("damage", None)
            if not obj.get("limitTo"):
                obj.pop("limitTo", None)
        return obj

    def update_source(self, changes: Mapping[str, Any]) -> "Modifier":
        """Apply wire-keyed changes, then re-clean, re-validate and re-initialize."""
        source = self.to_object(source=False)
        source.update(changes)
        source = self.clean_data(self.initialize_source(source, self.config), self.config)
        for attr, value in self._kwargs_from_source(source, self.config).items():
            setattr(self, attr, value)
        self._validate()
        self.initialize()
        return self

    # --- Host interaction ---

    def toggle(self, active: Optional[bool] = None) -> Any:
        """
        Enable/disable this modifier on its parent. With active=None the
        current state flips. The parent's modifier list is written back
        through parent.update so the host persists it.
        """
        parent = self.parent
        if parent is None:
            raise ValueError(f"Modifier {self.name!r} has no parent to toggle on.")

        parent_mods = parent.system.get("modifiers", [])
        mod_in_parent = next((m for m in parent_mods if _mod_id(m) == self.id), None)
        if mod_in_parent is None:
            raise KeyError(f"Modifier {self.id} not found on {getattr(parent, 'name', parent)!r}")

        current = mod_in_parent["enabled"] if isinstance(mod_in_parent, dict) else mod_in_parent.enabled
        enabled = (not current) if active is None else bool(active)

        if isinstance(mod_in_parent, dict):
            mod_in_parent["enabled"] = enabled
        else:
            mod_in_parent.update_source({"enabled": enabled})
        if mod_in_parent is not self:
            self.enabled = enabled

        logger.debug("Modifier %r on %r %s", self.name, getattr(parent, "name", parent), "enabled" if enabled else "disabled")
        return parent.update({"system.modifiers": parent_mods})


def _mod_id(mod: Union[Modifier, Mapping[str, Any]]) -> Optional[str]:
    if isinstance(mod, Mapping):
        return mod.get("_id") or mod.get("id")
    return mod.id

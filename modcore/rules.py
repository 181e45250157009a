# modcore/rules.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from .config import DEFAULT_CONFIG, ModifierConfig
from .dice import Dice, Number, RollResult
from .formula import Formula
from .models import EffectType, Modifier, StackEntry, StackResult

logger = logging.getLogger(__name__)

EffectTypes = Union[EffectType, str, Iterable[Union[EffectType, str]]]


def _effect_set(effect_types: EffectTypes) -> Set[EffectType]:
    if isinstance(effect_types, str):
        effect_types = [effect_types]
    out: Set[EffectType] = set()
    for et in effect_types:
        parsed = EffectType.parse(et)
        if parsed is None:
            raise ValueError(f"Unknown effect type: {et!r}")
        out.add(parsed)
    return out


@dataclass
class StackingRules:
    """
    Decides which modifiers count toward a statistic and how they add up.

    Stacking:
      - stacking types (untyped by default) always add together
      - penalties (negative values) add together, except several penalties from
        the same named source: only the worst of those applies
      - any other bonus type: only the largest bonus of that type applies

    Modifiers are compared by their computed max. Constant and deterministic
    formula modifiers land in the numeric total; formula modifiers that roll
    dice are kept as labelled roll parts.
    """

    dice: Dice = field(default_factory=Dice)
    config: ModifierConfig = DEFAULT_CONFIG

    # --- Selection ---

    def applicable(
        self,
        modifiers: Iterable[Modifier],
        effect_types: EffectTypes,
        value_affected: Optional[str] = None,
        *,
        item: Any = None,
        damage_types: Optional[Iterable[str]] = None,
    ) -> List[Modifier]:
        """
        Enabled modifiers that target one of effect_types.

        value_affected: the specific statistic ("acr", "fort"...). Modifiers
          with a blank valueAffected cover every value in their category; the
          others apply only when their own value is the one asked for.
        item: the item being rolled for, which limitTo scopes are checked against.
        damage_types: damage types of the roll; damage-section modifiers apply
          only when one of their flagged types is among them.
        """
        wanted = _effect_set(effect_types)
        dmg = set(damage_types) if damage_types is not None else None

        out: List[Modifier] = []
        for mod in modifiers:
            if not mod.enabled:
                continue
            if mod.effect_type not in wanted:
                continue
            if mod.value_affected and mod.value_affected != value_affected:
                continue
            if not self.in_scope(mod, item):
                continue
            if dmg is not None and mod.has_damage_section and not (set(mod.damage.flagged) & dmg):
                continue
            out.append(mod)
        return out

    @staticmethod
    def in_scope(mod: Modifier, item: Any = None) -> bool:
        """
        limitTo handling for modifiers that live on an item:
          - "parent": only rolls for that very item
          - "container": only rolls for items stored inside it
        Without a limit, or on an actor, the modifier is unscoped.
        """
        if not mod.limit_to:
            return True
        owner = mod.item
        if owner is None:
            return True
        if item is None:
            return False
        if mod.limit_to == "parent":
            return item.id == owner.id
        return getattr(item, "container_id", None) == owner.id

    # --- Stacking ---

    def is_stacking_type(self, mod: Modifier) -> bool:
        return mod.type in self.config.stacking_types

    def stack(self, modifiers: Iterable[Modifier]) -> StackResult:
        mods = list(modifiers)

        # winners per group; first in input order wins ties
        best_bonus: Dict[str, Modifier] = {}
        worst_penalty: Dict[str, Modifier] = {}

        for mod in mods:
            if self.is_stacking_type(mod):
                continue
            if mod.max < 0:
                src = mod.source.strip()
                if src and (src not in worst_penalty or mod.max < worst_penalty[src].max):
                    worst_penalty[src] = mod
            else:
                key = str(mod.type)
                if key not in best_bonus or mod.max > best_bonus[key].max:
                    best_bonus[key] = mod

        entries: List[StackEntry] = []
        total: Number = 0
        roll_parts: List[str] = []

        for mod in mods:
            winner = self._winner(mod, best_bonus, worst_penalty)
            if winner is not None and winner is not mod:
                entries.append(
                    StackEntry(
                        type="suppressed",
                        modifier=mod,
                        value=mod.max,
                        message=f"{mod.name} ({mod.max:+d} {mod.type}) does not stack with {winner.name} ({winner.max:+d})",
                        suppressed_by=winner.id,
                    )
                )
                continue

            value, part = self._contribution(mod)
            total += value
            if part:
                roll_parts.append(part)
            shown = part if part else f"{value:+d}"
            entries.append(
                StackEntry(type="applied", modifier=mod, value=value, message=f"{mod.name}: {shown} {mod.type}")
            )

        result = StackResult(total=total, roll_parts=tuple(roll_parts), entries=tuple(entries))
        logger.debug(
            "Stacked %d modifiers: total %s, %d roll parts, %d suppressed",
            len(mods), result.total, len(result.roll_parts), len(result.suppressed),
        )
        return result

    def _winner(
        self,
        mod: Modifier,
        best_bonus: Dict[str, Modifier],
        worst_penalty: Dict[str, Modifier],
    ) -> Optional[Modifier]:
        if self.is_stacking_type(mod):
            return None
        if mod.max < 0:
            src = mod.source.strip()
            return worst_penalty.get(src) if src else None
        return best_bonus.get(str(mod.type))

    def _contribution(self, mod: Modifier) -> Tuple[Number, str]:
        """(numeric value, roll part). Dice-rolling formulas contribute a roll part only."""
        if mod.is_formula and not mod.formula().is_deterministic:
            return 0, mod.roll_part
        return mod.max, ""

    # --- Convenience ---

    def resolve(
        self,
        modifiers: Iterable[Modifier],
        effect_types: EffectTypes,
        value_affected: Optional[str] = None,
        **kwargs: Any,
    ) -> StackResult:
        return self.stack(self.applicable(modifiers, effect_types, value_affected, **kwargs))

    def total_for(
        self,
        modifiers: Iterable[Modifier],
        effect_types: EffectTypes,
        value_affected: Optional[str] = None,
        **kwargs: Any,
    ) -> Number:
        return self.resolve(modifiers, effect_types, value_affected, **kwargs).total

    @staticmethod
    def formula_for(base: str, result: StackResult) -> str:
        """Base roll plus the stacked modifiers: "1d20 + 3 + 1d4[Bless]"."""
        if not result.entries or (not result.total and not result.roll_parts):
            return base
        return f"{base} + {result.formula}"

    def roll(self, base: str, result: StackResult, roll_data: Any = None) -> RollResult:
        formula = Formula(self.formula_for(base, result), roll_data, config=self.config)
        return formula.roll(self.dice)

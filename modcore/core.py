# modcore/core.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from .config import DEFAULT_CONFIG, ModifierConfig
from .dice import Dice, RollResult
from .formula import Formula
from .host import Actor
from .loader import ModifierLoader, PathLike
from .models import Modifier, StackResult
from .rules import EffectTypes, StackingRules


@dataclass
class ModifierEngine:
    """
    ModifierEngine is the public API for the package.

    Everything external (CLI, tests, a host integration) should call into this
    instead of wiring Modifier, Formula and StackingRules together ad hoc.
    """

    config: ModifierConfig = DEFAULT_CONFIG
    seed: Optional[int] = None

    dice: Dice = field(init=False)
    rules: StackingRules = field(init=False)

    def __post_init__(self) -> None:
        self.dice = Dice(seed=self.seed) if self.seed is not None else Dice()
        self.rules = StackingRules(dice=self.dice, config=self.config)

    # --- Modifiers --------------------------------------------------------

    def create_modifier(
        self,
        data: Optional[Mapping[str, Any]] = None,
        *,
        parent: Any = None,
        global_modifier: bool = False,
    ) -> Modifier:
        return Modifier.from_dict(data or {}, parent=parent, global_modifier=global_modifier, config=self.config)

    def load_modifiers(self, path: PathLike, parent: Any = None) -> List[Modifier]:
        return ModifierLoader(path, config=self.config).load(parent=parent)

    def save_modifiers(self, modifiers: Iterable[Modifier], path: PathLike) -> None:
        ModifierLoader(path, config=self.config).dump(modifiers)

    # --- Resolution -------------------------------------------------------

    def resolve(
        self,
        modifiers: Iterable[Modifier],
        effect_types: EffectTypes,
        value_affected: Optional[str] = None,
        **kwargs: Any,
    ) -> StackResult:
        """
        Stack the applicable modifiers for one statistic.
        kwargs (item, damage_types) go to StackingRules.applicable.
        """
        return self.rules.resolve(modifiers, effect_types, value_affected, **kwargs)

    def resolve_actor(
        self,
        actor: Actor,
        effect_types: EffectTypes,
        value_affected: Optional[str] = None,
        **kwargs: Any,
    ) -> StackResult:
        """Same as resolve(), over the actor's own and its items' modifiers."""
        return self.resolve(actor.all_modifiers(), effect_types, value_affected, **kwargs)

    def roll(self, base: str, result: StackResult, roll_data: Any = None) -> RollResult:
        return self.rules.roll(base, result, roll_data)

    def evaluate(self, formula: str, roll_data: Any = None, **kwargs: Any) -> RollResult:
        """
        Evaluate an arbitrary formula. Without options it must be deterministic;
        pass strict=False to roll with this engine's dice.
        """
        if not kwargs.get("strict", True) and "dice" not in kwargs:
            kwargs["dice"] = self.dice
        return Formula(formula, roll_data, config=self.config).evaluate(**kwargs)

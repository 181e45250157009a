# modcore/models/events.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

from ..dice import Number
from .modifier import Modifier

EntryType = Literal["applied", "suppressed"]


@dataclass(frozen=True)
class StackEntry:
    """
    Immutable record of what stacking did with one modifier.
    This is what you log/show in a sheet's breakdown tooltip.

    suppressed_by:
      - id of the modifier that won over this one (same bonus type, or the
        worse penalty from the same source); None when applied
    """
    type: EntryType
    modifier: Modifier
    value: Number
    message: str = ""
    suppressed_by: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.type == "applied"


@dataclass(frozen=True)
class StackResult:
    """
    Outcome of stacking a set of modifiers for one statistic.

    total:      sum of the applied constant modifiers
    roll_parts: applied formula modifiers as labelled roll terms ("1d4[Bless]")
    entries:    one StackEntry per input modifier, in input order
    """
    total: Number = 0
    roll_parts: Tuple[str, ...] = ()
    entries: Tuple[StackEntry, ...] = field(default_factory=tuple)

    @property
    def applied(self) -> List[Modifier]:
        return [e.modifier for e in self.entries if e.applied]

    @property
    def suppressed(self) -> List[Modifier]:
        return [e.modifier for e in self.entries if not e.applied]

    @property
    def formula(self) -> str:
        """Total plus roll parts as one formula fragment, e.g. "3 + 1d4[Bless]"."""
        parts = [str(self.total)] if self.total or not self.roll_parts else []
        parts.extend(self.roll_parts)
        return " + ".join(parts)

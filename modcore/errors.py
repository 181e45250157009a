# modcore/errors.py
from __future__ import annotations

from typing import List, Optional, Sequence


class ModcoreError(Exception):
    """Base class for everything this package raises on purpose."""


class ModifierValidationError(ModcoreError, ValueError):
    """
    Raised when modifier data fails schema validation.

    errors holds one message per failing field so callers (sheets, importers)
    can report everything at once instead of fixing one field per round trip.
    """

    def __init__(self, errors: Sequence[str], name: Optional[str] = None) -> None:
        self.errors: List[str] = list(errors)
        self.name = name
        prefix = f"Invalid modifier {name!r}" if name else "Invalid modifier"
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


class FormulaError(ModcoreError, ValueError):
    """Raised when a modifier formula cannot be parsed or evaluated."""

    def __init__(self, message: str, formula: str = "") -> None:
        self.formula = formula
        if formula:
            message = f"{message} (formula: {formula!r})"
        super().__init__(message)


class ModifierLoadError(ModcoreError):
    """Raised when a stored modifier list cannot be read."""

    def __init__(self, message: str, path: str = "", index: Optional[int] = None) -> None:
        self.path = path
        self.index = index
        where = path
        if index is not None:
            where = f"{path}[{index}]" if path else f"[{index}]"
        super().__init__(f"{where}: {message}" if where else message)


class NonDeterministicFormulaError(FormulaError):
    """Raised by strict evaluation when a formula would have to roll dice."""

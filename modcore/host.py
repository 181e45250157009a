# modcore/host.py
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Protocol

from .models import Modifier

logger = logging.getLogger(__name__)


class ModifierParent(Protocol):
    """
    What a modifier needs from the document that owns it.

    - system: the parent's data; system["modifiers"] is the modifier list and
      the rest doubles as roll data for @references
    - update: apply dotted-path changes ({"system.modifiers": [...]}) and persist

    A real tabletop host provides its own actor/item documents; Actor and Item
    below are the minimal in-memory stand-ins.
    """

    document_name: str
    name: str
    system: Dict[str, Any]

    def update(self, changes: Mapping[str, Any]) -> Any: ...


def set_path(target: Any, path: str, value: Any) -> None:
    """Set "a.b.c" on an object/dict tree, creating intermediate dicts."""
    parts = path.split(".")
    obj = target
    for part in parts[:-1]:
        if isinstance(obj, dict):
            obj = obj.setdefault(part, {})
        else:
            obj = getattr(obj, part)
    if isinstance(obj, dict):
        obj[parts[-1]] = value
    else:
        setattr(obj, parts[-1], value)


@dataclass
class Token:
    id: str
    name: str
    actor_id: str
    linked: bool = True


@dataclass
class _Document:
    """
    Shared behavior of in-memory actors and items.

    Modifier dicts found in system["modifiers"] at construction are turned
    into Modifier instances parented to this document.
    """
    id: str
    name: str
    system: Dict[str, Any] = field(default_factory=dict)

    document_name: ClassVar[str] = ""

    # every update() call, for callers that need to observe persistence
    updates: List[Dict[str, Any]] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError(f"{self.document_name} id must not be empty")
        # Own the top-level mapping; the caller's dict keeps its modifier list.
        self.system = dict(self.system)
        self.system["modifiers"] = [self._adopt(m) for m in self.system.get("modifiers", [])]

    def _adopt(self, mod: Any) -> Modifier:
        if isinstance(mod, Modifier):
            mod.parent = self
            return mod
        return Modifier.from_dict(mod, parent=self)

    @property
    def modifiers(self) -> List[Modifier]:
        return self.system["modifiers"]

    def roll_data(self) -> Dict[str, Any]:
        """system without the modifier list, safe for formulas to read."""
        return {k: copy.deepcopy(v) for k, v in self.system.items() if k != "modifiers"}

    def add_modifier(self, data: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Modifier:
        """
        Create a modifier on this document. Accepts wire-keyed data
        ({"modifierType": ...}) and/or the same keys as keyword arguments.
        """
        payload = dict(data or {})
        payload.update(kwargs)
        mod = Modifier.from_dict(payload, parent=self)
        self.update({"system.modifiers": self.modifiers + [mod]})
        return mod

    def get_modifier(self, modifier_id: str) -> Modifier:
        for mod in self.modifiers:
            if mod.id == modifier_id:
                return mod
        raise KeyError(f"Modifier not found on {self.name!r}: {modifier_id}")

    def delete_modifier(self, modifier_id: str) -> Modifier:
        mod = self.get_modifier(modifier_id)
        self.update({"system.modifiers": [m for m in self.modifiers if m.id != modifier_id]})
        return mod

    def update(self, changes: Mapping[str, Any]) -> "_Document":
        for path, value in changes.items():
            if path == "system.modifiers":
                value = [self._adopt(m) for m in value]
            set_path(self, path, value)
        self.updates.append(dict(changes))

        # Roll data may have changed under the formulas.
        self.prepare_modifiers()
        logger.debug("%s %r updated: %s", self.document_name, self.name, ", ".join(changes))
        return self

    def prepare_modifiers(self) -> None:
        for mod in self.modifiers:
            mod.initialize()


@dataclass
class Item(_Document):
    """
    An item that can carry modifiers.

    actor:        owning actor, if any
    container_id: id of the item holding this one (a backpack, a weapon's fusion slot...)
    """
    actor: Optional["Actor"] = field(default=None, repr=False, compare=False)
    container_id: Optional[str] = None

    document_name: ClassVar[str] = "Item"


@dataclass
class Actor(_Document):
    """
    A character. items are owned items; tokens are the actor's placed tokens.
    is_token marks a synthetic token actor whose own token is `token`.
    """
    items: List[Item] = field(default_factory=list, repr=False)
    tokens: List[Token] = field(default_factory=list, repr=False)
    is_token: bool = False
    token: Optional[Token] = None

    document_name: ClassVar[str] = "Actor"

    def __post_init__(self) -> None:
        super().__post_init__()
        for item in self.items:
            item.actor = self
        if self.is_token and self.token is None:
            raise ValueError("token actors need a token")

    def add_item(self, item: Item) -> Item:
        item.actor = self
        self.items.append(item)
        return item

    def get_item(self, item_id: str) -> Item:
        for item in self.items:
            if item.id == item_id:
                return item
        raise KeyError(f"Item not found on {self.name!r}: {item_id}")

    def get_active_tokens(self, linked: bool = False, document: bool = False) -> List[Token]:
        """
        Placed tokens for this actor; linked=True keeps only linked ones.
        document is accepted for host call compatibility: in-memory tokens
        are already documents.
        """
        return [t for t in self.tokens if t.linked or not linked]

    def all_modifiers(self) -> Iterator[Modifier]:
        """The actor's own modifiers, then each owned item's."""
        yield from self.modifiers
        for item in self.items:
            yield from item.modifiers

# modcore/loader.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import DEFAULT_CONFIG, ModifierConfig
from .errors import ModifierLoadError, ModifierValidationError
from .models import Modifier

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]
PathLike = Union[str, Path]


def _loads_json(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return json.loads(value.decode("utf-8"))
    if isinstance(value, str):
        return json.loads(value)
    raise TypeError(f"Unsupported JSON payload type: {type(value)}")


def read_json_file(path: PathLike) -> Any:
    p = Path(path)
    try:
        return _loads_json(p.read_bytes())
    except FileNotFoundError as e:
        raise ModifierLoadError("File not found", path=str(p)) from e
    except OSError as e:
        raise ModifierLoadError(f"Cannot read file: {e.strerror or e}", path=str(p)) from e
    except UnicodeDecodeError as e:
        raise ModifierLoadError(f"File is not valid UTF-8 (byte {e.start})", path=str(p)) from e
    except json.JSONDecodeError as e:
        raise ModifierLoadError(f"Invalid JSON: {e.msg} (line {e.lineno})", path=str(p)) from e
    except RecursionError as e:
        raise ModifierLoadError("Invalid JSON: nested too deeply", path=str(p)) from e


def _entries(payload: Any) -> List[Any]:
    """
    Accept either a bare list of modifiers or a document with a modifier list:
      - [{...}, {...}]
      - {"modifiers": [...]}
      - {"system": {"modifiers": [...]}}   (an exported actor/item)
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("modifiers"), list):
            return payload["modifiers"]
        system = payload.get("system")
        if isinstance(system, dict) and isinstance(system.get("modifiers"), list):
            return system["modifiers"]
    raise ModifierLoadError("Expected a list of modifiers or an object with a 'modifiers' list")


@dataclass
class ModifierLoader:
    """Reads and writes modifier lists as JSON files."""

    path: PathLike
    config: ModifierConfig = DEFAULT_CONFIG

    def read_json(self) -> Any:
        return read_json_file(self.path)

    def load(self, parent: Any = None) -> List[Modifier]:
        """
        Build Modifier instances from the file. The first bad entry aborts the
        load with a ModifierLoadError that names its index.
        """
        path = str(self.path)
        try:
            raw = _entries(self.read_json())
        except ModifierLoadError as e:
            if e.path:
                raise
            raise ModifierLoadError(str(e), path=path) from e

        mods: List[Modifier] = []
        for i, entry in enumerate(raw):
            if not isinstance(entry, dict):
                raise ModifierLoadError(f"Expected an object, got {type(entry).__name__}", path=path, index=i)
            try:
                mods.append(Modifier.from_dict(entry, parent=parent, config=self.config))
            except ModifierValidationError as e:
                raise ModifierLoadError(str(e), path=path, index=i) from e

        logger.info("Loaded %d modifiers from %s", len(mods), path)
        return mods

    def dump(self, modifiers: Iterable[Modifier], *, indent: Optional[int] = 2) -> Path:
        """Write minimal (source) objects, the form a host would store."""
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)
        data = [m.to_object() for m in modifiers]
        p.write_text(json.dumps(data, indent=indent) + "\n", encoding="utf-8")
        logger.info("Wrote %d modifiers to %s", len(data), p)
        return p


def load_roll_data(path: Optional[PathLike]) -> JsonDict:
    """Roll data for @references; a missing path means no data."""
    if path is None:
        return {}
    data = read_json_file(path)
    if not isinstance(data, dict):
        raise ModifierLoadError("Roll data must be a JSON object", path=str(path))
    return data

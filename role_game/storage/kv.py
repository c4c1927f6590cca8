"""Key/value store: one JSON-encoded string value per file.

Mirrors a browser-style storage contract (get/set/remove by name) so game
state persistence does not care where the bytes live.
"""

import re
from pathlib import Path

from .core import kv_dir


def _item_path(name: str) -> Path:
    safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("._")
    if not safe:
        raise ValueError(f"Invalid storage key: {name!r}")
    return kv_dir() / f"{safe}.json"


def get_item(name: str) -> str | None:
    """Return the stored value, or None if the key does not exist."""
    path = _item_path(name)
    if not path.is_file():
        return None
    return path.read_text()


def set_item(name: str, value: str) -> None:
    path = _item_path(name)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(value)
    tmp.replace(path)


def remove_item(name: str) -> bool:
    """Delete a key. Returns False if it did not exist."""
    path = _item_path(name)
    if not path.is_file():
        return False
    path.unlink()
    return True

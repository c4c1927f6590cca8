"""Game state persistence.

Stored under a single key as {"state": <MemorySnapshot>, "version": N}.
The continuation token is never written.
"""

import json
import logging

from pydantic import ValidationError

from role_game.memory import ConversationMemory, MemorySnapshot

from .kv import get_item, remove_item, set_item

logger = logging.getLogger(__name__)

STORAGE_NAME = "role-game-storage"
STORAGE_VERSION = 1


def save_game(memory: ConversationMemory) -> None:
    payload = {
        "state": memory.to_snapshot().model_dump(mode="json"),
        "version": STORAGE_VERSION,
    }
    set_item(STORAGE_NAME, json.dumps(payload, indent=2))


def load_game() -> ConversationMemory | None:
    """Load saved state. Returns None when missing or unreadable."""
    raw = get_item(STORAGE_NAME)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
        snapshot = MemorySnapshot.model_validate(data.get("state", {}))
    except (json.JSONDecodeError, AttributeError, ValidationError) as e:
        logger.warning(f"Saved game is unreadable, ignoring it: {e}")
        return None
    return ConversationMemory.from_snapshot(snapshot)


def delete_game() -> bool:
    return remove_item(STORAGE_NAME)

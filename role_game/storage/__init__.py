"""File-based JSON storage.

Data layout:
  data/
    config.json                  App settings (model server URL, limits)
    kv/
      role-game-storage.json     Saved game: {"state": {...}, "version": 1}

The key/value layer (get_item / set_item / remove_item) knows nothing about
games; game.py projects ConversationMemory into it. The continuation token
is never persisted.

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates, ignoring unknown keys.
"""

# Re-export all public symbols so `from role_game import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    kv_dir,
)

from .kv import (  # noqa: F401
    get_item,
    remove_item,
    set_item,
)

from .game import (  # noqa: F401
    STORAGE_NAME,
    delete_game,
    load_game,
    save_game,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)

"""Narrator response pipeline.

Turns a streamed model response into display text and game-state commands:
  1. StreamDecoder — reassemble JSON objects from arbitrary network chunks.
  2. Tag parser — pull [KEYWORD: a|b|c] commands out of the narration.
  3. Fallback extractor — infer items, location and facts from plain prose
     when the narrator skipped the tags.
  4. Context summary + movement intent — augment the next request.
  5. GameSession — one generation at a time, commands applied once per
     completed generation.

Tag grammar (parsed by parse_game_response):
  [ITEM_ADD: Name|Description|Quantity]
  [ITEM_REMOVE: Name|Quantity]
  [LOCATION: Name|Description]
  [NPC: Name|Location|Description]
  [EVENT: Description]
  [FACT: Fact|Importance]
"""

from .context import build_context_summary  # noqa: F401
from .core import GameSession, TurnResult  # noqa: F401
from .fallback import (  # noqa: F401
    extract_commands,
    extract_facts,
    fallback_items,
    fallback_location,
)
from .movement import MovementIntent, detect_movement_intent  # noqa: F401
from .stream import StreamDecoder, decode_stream  # noqa: F401
from .tags import display_text, parse_game_response  # noqa: F401

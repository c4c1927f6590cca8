"""Bracket tag parsing for narrator output.

Tag format (keyword case-insensitive, fields pipe-delimited):
  [ITEM_ADD: Name|Description|Quantity]     (alias ADD_ITEM)
  [ITEM_REMOVE: Name|Quantity]              (alias REMOVE_ITEM)
  [LOCATION: Name|Description]
  [NPC: Name|Location|Description]
  [EVENT: Description]
  [FACT: Fact|critical|major|minor]

Optional fields may be omitted. Every field except the last must be free of
"|", "[" and "]"; the last field runs to the closing bracket. A tag whose
first field is blank is not a tag and stays in the text.
"""

import re

from role_game.models import (
    AddItem,
    AddNpc,
    AddStoryEvent,
    AddStoryFact,
    Command,
    ParsedResponse,
    RemoveItem,
    SetLocation,
    make_id,
)

# keyword → number of fields
_ARITY: dict[str, int] = {
    "ITEM_ADD": 3,
    "ADD_ITEM": 3,
    "ITEM_REMOVE": 2,
    "REMOVE_ITEM": 2,
    "LOCATION": 2,
    "NPC": 3,
    "EVENT": 1,
    "FACT": 2,
}

_TAG_RE = re.compile(
    r"\[\s*(" + "|".join(_ARITY) + r")\s*:([^\]]*)\]",
    re.IGNORECASE,
)

# An opening bracket near the end that has not been closed yet.
_PARTIAL_TAG_RE = re.compile(r"\[\s*[A-Za-z_]*\s*(?::[^\]]*)?$")

_IMPORTANCE = ("critical", "major", "minor")


def _clean_field(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


def _split_fields(keyword: str, body: str) -> list[str]:
    """Split a tag body into at most arity fields, padding missing ones."""
    arity = _ARITY[keyword]
    head = body.split("|", arity - 1)
    # Only the last field may carry "|"
    fields = [_clean_field(f) for f in head]
    fields.extend([""] * (arity - len(fields)))
    return fields


def _quantity(raw: str) -> int | None:
    raw = raw.strip()
    if raw.isdigit():
        return max(int(raw), 1)
    return None


def _build_command(keyword: str, fields: list[str]) -> Command | None:
    name = fields[0]
    if not name:
        return None

    if keyword in ("ITEM_ADD", "ADD_ITEM"):
        desc, qty_raw = fields[1], fields[2]
        qty = _quantity(qty_raw) if qty_raw else 1
        if qty is None:
            # not a quantity, so it belongs to the description
            desc = f"{desc}|{qty_raw}" if desc else qty_raw
            qty = 1
        return AddItem(
            id=make_id(name),
            name=name,
            description=desc or "No description",
            quantity=qty,
        )

    if keyword in ("ITEM_REMOVE", "REMOVE_ITEM"):
        return RemoveItem(id=make_id(name), name=name, quantity=_quantity(fields[1]) or 1)

    if keyword == "LOCATION":
        return SetLocation(
            id=make_id(name),
            name=name,
            description=fields[1] or "Unknown location",
        )

    if keyword == "NPC":
        location = fields[1]
        return AddNpc(
            id=make_id(name),
            name=name,
            description=fields[2] or "No description",
            location_id=make_id(location) if location else None,
        )

    if keyword == "EVENT":
        return AddStoryEvent(description=name)

    if keyword == "FACT":
        importance = fields[1].lower()
        return AddStoryFact(
            fact=name,
            importance=importance if importance in _IMPORTANCE else "major",
        )

    return None


def parse_game_response(text: str) -> ParsedResponse:
    """Strip all valid tags from text and return the commands they encode.

    Pure: safe to call repeatedly on the same or a growing text.
    """
    commands: list[Command] = []

    def _replace(match: re.Match) -> str:
        keyword = match.group(1).upper()
        body = match.group(2)
        leading = body.split("|", _ARITY[keyword] - 1)[:-1]
        if any("[" in f for f in leading):
            return match.group(0)
        cmd = _build_command(keyword, _split_fields(keyword, body))
        if cmd is None:
            return match.group(0)
        commands.append(cmd)
        return ""

    clean = _TAG_RE.sub(_replace, text)
    return ParsedResponse(clean_text=clean.strip(), commands=commands)


def display_text(raw: str) -> str:
    """Clean text for showing while a response is still streaming.

    Hides a trailing tag that has started but not closed yet.
    """
    clean = parse_game_response(raw).clean_text
    return _PARTIAL_TAG_RE.sub("", clean).rstrip()

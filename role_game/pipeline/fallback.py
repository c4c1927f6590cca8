"""Heuristic command extraction for narrator text without tags.

The narrator does not always emit tags. When a category produced nothing from
tags, these patterns try to recover it from plain prose. Exclusion lists and
length windows keep false positives bounded.

  items     — every non-overlapping match across all patterns, deduped
  location  — first matching pattern, first match only
  facts     — always run; first pattern with a usable candidate
"""

import logging
import re
import string

from role_game.models import (
    AddItem,
    AddStoryFact,
    Command,
    Importance,
    ParsedResponse,
    SetLocation,
    make_id,
)

from .tags import parse_game_response

logger = logging.getLogger(__name__)

FALLBACK_ITEM_DESCRIPTION = "Found during your adventure"
FALLBACK_LOCATION_DESCRIPTION = "Discovered during your travels"

FACT_MIN_LENGTH = 15
FACT_MAX_LENGTH = 100

ITEM_EXCLUSIONS = frozenset({
    "moment", "moments", "breath", "look", "glance", "step", "steps", "seat",
    "chance", "turn", "while", "second", "minute", "note", "notice", "shadow",
    "shadows", "door", "doors", "stairs", "path", "way", "lead", "hold",
    "hand", "hands", "time", "rest", "aim", "cover", "care", "advantage",
    "place", "part", "it", "them", "this", "that", "one", "nothing",
})

LOCATION_EXCLUSIONS = frozenset({
    "darkness", "silence", "shadow", "shadows", "light", "room", "doorway",
    "middle", "center", "centre", "corner", "edge", "fray", "conversation",
    "water", "line", "front", "it", "them",
})

_ARTICLE = r"(?:(?:the|a|an|some|your)\s+)?"
_WORD = r"[a-z][\w'-]*"

_ITEM_NAME = rf"({_WORD}(?:\s+{_WORD}){{0,3}}?)"
_ITEM_END = (
    r"(?=\s*(?:[.,;:!?\n]|$)"
    r"|\s+(?:and|from|off|out|with|to|in|on|into|under|before|as|that|which|while|then|for"
    r"|at|back|around|down|up|away|over|aside|toward|towards)\b)"
)

_PLACE_NAME = rf"({_WORD}(?:\s+{_WORD}){{0,5}}?)"
_PLACE_END = (
    r"(?=\s*(?:[.,;:!?\n]|$)"
    r"|\s+(?:and|where|as|with|to|while|which|that|just|for|before|after|when"
    r"|at|by|near|under|beneath)\b)"
)

# A preposition right after the verb is a gesture ("you reach for"), not a place
_NOT_PREPOSITION = r"(?!(?:for|out|up|over|across|around|back|toward|towards)\b)"

ITEM_PATTERNS = [
    re.compile(
        r"\byou\s+(?:carefully\s+|quickly\s+)?"
        r"(?:pick\s+up|take|grab|obtain|receive|collect|pocket|acquire|snatch)\s+"
        + _ARTICLE + _ITEM_NAME + _ITEM_END,
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:hands|gives|passes|tosses|offers)\s+you\s+" + _ARTICLE + _ITEM_NAME + _ITEM_END,
        re.IGNORECASE,
    ),
    re.compile(
        r"\byou\s+now\s+(?:have|hold|carry|possess)\s+" + _ARTICLE + _ITEM_NAME + _ITEM_END,
        re.IGNORECASE,
    ),
]

LOCATION_PATTERNS = [
    re.compile(
        r"\byou\s+(?:finally\s+)?"
        r"(?:arrive\s+(?:at|in)|enter|reach|step\s+(?:into|inside)|walk\s+into"
        r"|find\s+yourself\s+(?:in|at|inside))\s+"
        + _NOT_PREPOSITION + _ARTICLE + _PLACE_NAME + _PLACE_END,
        re.IGNORECASE,
    ),
    re.compile(
        r"\bstanding\s+(?:in|at|inside)\s+" + _ARTICLE + _PLACE_NAME + _PLACE_END,
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:gates?|doors?)\s+(?:opens?|swings?\s+open|creaks?\s+open)\s+"
        r"(?:onto|into|to\s+reveal)\s+"
        + _ARTICLE + _PLACE_NAME + _PLACE_END,
        re.IGNORECASE,
    ),
]

# (importance, pattern, format); group 1 is the candidate
FACT_PATTERNS: list[tuple[Importance, re.Pattern, str]] = [
    (
        "major",
        re.compile(
            r"\byou\s+(?:discover|learn|realize|realise|find\s+out|understand)\s+"
            r"(?:that\s+)?([^.!?\n]+)",
            re.IGNORECASE,
        ),
        "{}",
    ),
    (
        "minor",
        re.compile(
            r"\b(?:written|inscribed|carved|etched|scrawled)\b[^\"“\n]{0,40}?"
            r"[\"“]([^\"”\n]+)[\"”]",
            re.IGNORECASE,
        ),
        'Written: "{}"',
    ),
    (
        "major",
        re.compile(
            r"\b((?:a|an|the)\s+(?:secret|hidden)\s+[^.!?\n]+)",
            re.IGNORECASE,
        ),
        "{}",
    ),
]


def _excluded(name: str, exclusions: frozenset[str], words: tuple[int, ...]) -> bool:
    lowered = name.lower()
    parts = lowered.split()
    return lowered in exclusions or any(parts[w] in exclusions for w in words)


def fallback_items(text: str) -> list[AddItem]:
    """Infer acquired items from first-person acquisition phrasing."""
    found: list[tuple[int, str]] = []
    spans: list[tuple[int, int]] = []

    for pattern in ITEM_PATTERNS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < e and s < end for s, e in spans):
                continue
            name = match.group(1).strip()
            if not name or _excluded(name, ITEM_EXCLUSIONS, (0, -1)):
                continue
            spans.append((start, end))
            found.append((start, name))

    seen: set[str] = set()
    commands: list[AddItem] = []
    for _, name in sorted(found):
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        display = string.capwords(name)
        commands.append(AddItem(
            id=make_id(display),
            name=display,
            description=FALLBACK_ITEM_DESCRIPTION,
            quantity=1,
        ))
    return commands


def fallback_location(text: str) -> SetLocation | None:
    """Infer at most one arrival location from the text."""
    for pattern in LOCATION_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1).strip()
            if not name or _excluded(name, LOCATION_EXCLUSIONS, (0,)):
                continue
            display = string.capwords(name)
            return SetLocation(
                id=make_id(display),
                name=display,
                description=FALLBACK_LOCATION_DESCRIPTION,
            )
    return None


def extract_facts(text: str) -> list[AddStoryFact]:
    """Pull discovery-style facts worth remembering out of the text."""
    for importance, pattern, fmt in FACT_PATTERNS:
        facts: list[AddStoryFact] = []
        for match in pattern.finditer(text):
            candidate = match.group(1).strip()
            if not FACT_MIN_LENGTH <= len(candidate) <= FACT_MAX_LENGTH:
                continue
            facts.append(AddStoryFact(fact=fmt.format(candidate), importance=importance))
        if facts:
            return facts
    return []


def extract_commands(text: str) -> ParsedResponse:
    """Full extraction for a completed response: tags first, then fallbacks."""
    parsed = parse_game_response(text)
    commands: list[Command] = list(parsed.commands)
    clean = parsed.clean_text

    if not any(c.type == "ADD_ITEM" for c in commands):
        items = fallback_items(clean)
        if items:
            logger.debug("Fallback items: %s", [i.name for i in items])
        commands.extend(items)

    if not any(c.type == "SET_LOCATION" for c in commands):
        location = fallback_location(clean)
        if location is not None:
            logger.debug("Fallback location: %s", location.name)
            commands.append(location)

    commands.extend(extract_facts(clean))
    return ParsedResponse(clean_text=clean, commands=commands)

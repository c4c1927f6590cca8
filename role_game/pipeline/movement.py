"""Player movement intent detection.

Small models love to narrate endless journeys. When the player asks to go
somewhere (or says they already arrived) a directive is appended to the
request telling the narrator to land them at the destination this turn.

Order matters: arrival is checked before movement so "I arrive at X" gets
the stronger wording, and home phrasing is checked before generic movement.
"""

import re
from typing import Literal

from pydantic import BaseModel

from role_game.prompts import (
    ARRIVAL_TEMPLATE,
    HOME_TEMPLATE,
    MOVEMENT_TEMPLATE,
    render_prompt,
)

IntentKind = Literal["arrival", "movement", "home", "none"]

DEFAULT_DESTINATION = "their destination"

_DESTINATION_RE = re.compile(
    r"(?:\b(?:go|goes|going|head|heading|travel|walk|run|return|arrive|visit|get"
    r"|enter|reach|step|move|am|(?:take|bring)\s+me)|'m)\s+"
    r"(?:back\s+)?(?:(?:to|at|in|into|inside|towards?)\s+)?"
    r"(.+?)(?:\s+to\s+(?:see|meet|find)\b.*)?[.!?]*$",
    re.IGNORECASE,
)

ARRIVAL_PATTERNS = [
    re.compile(r"^i\s+arrive", re.IGNORECASE),
    re.compile(r"^i\s+enter", re.IGNORECASE),
    re.compile(r"^i\s+reach", re.IGNORECASE),
    re.compile(r"^i\s+get\s+to", re.IGNORECASE),
    re.compile(r"^i('m| am)\s+(at|inside|there)", re.IGNORECASE),
    re.compile(r"^i\s+step\s+(into|inside)", re.IGNORECASE),
]

HOME_PATTERN = re.compile(
    r"(go|head|travel|return|leave|visit)\s+(to\s+)?my\s+(home|apartment|house|room|place)",
    re.IGNORECASE,
)

MOVEMENT_PATTERNS = [
    re.compile(r"^i\s+(go|head|travel|walk|run|return|leave|exit|depart|move)\s+(to|towards?|back|home|for)", re.IGNORECASE),
    re.compile(r"^i\s+(go|head|walk|run)\s+\w+", re.IGNORECASE),
    re.compile(r"^(let'?s?|we)\s+(go|head|travel|leave|return)", re.IGNORECASE),
    re.compile(r"^(going|heading|leaving|returning)\s+(to|home|back)", re.IGNORECASE),
    re.compile(r"^take me to", re.IGNORECASE),
    re.compile(r"^bring me to", re.IGNORECASE),
    re.compile(r"^i want to (go|leave|return|head|visit)", re.IGNORECASE),
    re.compile(r"^i('d| would) like to (go|leave|return|visit)", re.IGNORECASE),
    re.compile(r"^(off to|back to|home to)", re.IGNORECASE),
    re.compile(r"^go to", re.IGNORECASE),
    re.compile(r"need to (visit|go|see|meet)", re.IGNORECASE),
    re.compile(r"^i\s+(need|must|have)\s+to\s+(go|visit|see|get)", re.IGNORECASE),
]


class MovementIntent(BaseModel):
    kind: IntentKind = "none"
    destination: str = ""
    directive: str = ""


def extract_destination(player_input: str) -> str:
    match = _DESTINATION_RE.search(player_input.strip())
    if not match:
        return DEFAULT_DESTINATION
    destination = match.group(1).strip()
    return destination or DEFAULT_DESTINATION


def detect_movement_intent(player_input: str) -> MovementIntent:
    """Classify player input and build the matching narrator directive."""
    text = player_input.strip()
    if not text:
        return MovementIntent()

    if any(p.search(text) for p in ARRIVAL_PATTERNS):
        destination = extract_destination(text)
        return MovementIntent(
            kind="arrival",
            destination=destination,
            directive=render_prompt(ARRIVAL_TEMPLATE, {"destination": destination}),
        )

    if HOME_PATTERN.search(text):
        return MovementIntent(
            kind="home",
            destination="Player's Home",
            directive=HOME_TEMPLATE,
        )

    if any(p.search(text) for p in MOVEMENT_PATTERNS):
        destination = extract_destination(text)
        return MovementIntent(
            kind="movement",
            destination=destination,
            directive=render_prompt(MOVEMENT_TEMPLATE, {"destination": destination}),
        )

    return MovementIntent()

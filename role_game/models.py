"""Core domain models.

Game state, narrator commands and wire fragments all use these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import re
import time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "system"]
Importance = Literal["critical", "major", "minor"]


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def make_id(name: str) -> str:
    """Derive an entity id from a display name.

    "  Rusty   Key " → "rusty-key"
    """
    return re.sub(r"\s+", "-", name.strip().lower())


# ---------------------------------------------------------------------------
# Game state records
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    """A single entry in the conversation log."""

    role: Role
    content: str
    timestamp: int = Field(default_factory=now_ms)


class InventoryItem(BaseModel):
    id: str
    name: str
    description: str
    quantity: int = 1


class Location(BaseModel):
    id: str
    name: str
    description: str
    visited_at: int = Field(default_factory=now_ms)


class Npc(BaseModel):
    """A character the player has met."""

    id: str
    name: str
    description: str
    current_location_id: str | None = None
    first_met_at: int = Field(default_factory=now_ms)


class StoryEvent(BaseModel):
    id: str
    description: str
    timestamp: int = Field(default_factory=now_ms)
    location_id: str | None = None


class StoryFact(BaseModel):
    """Something the narrator must not forget."""

    id: str
    fact: str
    importance: Importance = "minor"
    timestamp: int = Field(default_factory=now_ms)


class JournalEntry(BaseModel):
    """A player-written note."""

    id: str
    title: str
    content: str
    timestamp: int = Field(default_factory=now_ms)
    ai_summary: str | None = None


# ---------------------------------------------------------------------------
# Commands extracted from narrator output
# ---------------------------------------------------------------------------

class AddItem(BaseModel):
    type: Literal["ADD_ITEM"] = "ADD_ITEM"
    id: str
    name: str
    description: str = "No description"
    quantity: int = 1


class RemoveItem(BaseModel):
    type: Literal["REMOVE_ITEM"] = "REMOVE_ITEM"
    id: str
    name: str
    quantity: int = 1


class SetLocation(BaseModel):
    type: Literal["SET_LOCATION"] = "SET_LOCATION"
    id: str
    name: str
    description: str = "Unknown location"


class AddNpc(BaseModel):
    type: Literal["ADD_NPC"] = "ADD_NPC"
    id: str
    name: str
    description: str = "No description"
    location_id: str | None = None  # None → wherever the player is


class AddStoryEvent(BaseModel):
    type: Literal["STORY_EVENT"] = "STORY_EVENT"
    description: str


class AddStoryFact(BaseModel):
    type: Literal["STORY_FACT"] = "STORY_FACT"
    fact: str
    importance: Importance = "major"


Command = Annotated[
    Union[AddItem, RemoveItem, SetLocation, AddNpc, AddStoryEvent, AddStoryFact],
    Field(discriminator="type"),
]


class ParsedResponse(BaseModel):
    """Narrator text with tags stripped, plus the commands they encoded."""

    clean_text: str
    commands: list[Command] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Model server wire types
# ---------------------------------------------------------------------------

class OllamaModel(BaseModel):
    """One entry of GET /api/tags."""

    name: str
    modified_at: str = ""
    size: int = 0
    digest: str = ""


class Fragment(BaseModel):
    """One decoded piece of a generation."""

    text: str = ""
    is_final: bool = False
    continuation_token: list[int] | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Fragment:
        """Build from a /api/generate response object."""
        return cls(
            text=data.get("response") or "",
            is_final=bool(data.get("done", False)),
            continuation_token=data.get("context"),
        )

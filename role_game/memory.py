"""Bounded conversation and world memory for one game.

ConversationMemory is the single mutable state handle of a game. It is
created by the caller and passed explicitly to whatever needs it; nothing
here is module-global.

Bounds:
  messages  — most recent MAX_MESSAGES
  events    — most recent MAX_EVENTS
  facts     — MAX_FACTS, evicted minor-and-oldest first
  token     — dropped entirely at MAX_CONTEXT_TOKENS elements, never persisted
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from role_game.models import (
    AddItem,
    AddNpc,
    AddStoryEvent,
    AddStoryFact,
    ChatMessage,
    Importance,
    InventoryItem,
    JournalEntry,
    Location,
    Npc,
    RemoveItem,
    SetLocation,
    StoryEvent,
    StoryFact,
)

logger = logging.getLogger(__name__)

MAX_MESSAGES = 50
MAX_EVENTS = 10
MAX_FACTS = 20
MAX_CONTEXT_TOKENS = 20000

DEFAULT_SYSTEM_PROMPT = (
    "You are a Game Master for a generic text role-playing game. "
    "Describe the scenes vividly."
)

_SEVERITY: dict[str, int] = {"critical": 0, "major": 1, "minor": 2}


def _new_id() -> str:
    return uuid.uuid4().hex


class MemorySnapshot(BaseModel):
    """Persisted projection of ConversationMemory (no continuation token)."""

    selected_model: str = ""
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    chat_history: list[ChatMessage] = Field(default_factory=list)
    inventory: list[InventoryItem] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    current_location_id: str | None = None
    npcs: list[Npc] = Field(default_factory=list)
    story_events: list[StoryEvent] = Field(default_factory=list)
    story_facts: list[StoryFact] = Field(default_factory=list)
    journal: list[JournalEntry] = Field(default_factory=list)


class ConversationMemory:
    def __init__(
        self,
        selected_model: str = "",
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self.selected_model = selected_model
        self.system_prompt = system_prompt
        self.continuation_token: list[int] | None = None
        self.clear()

    def clear(self) -> None:
        """Reset all game data. Model and system prompt are kept."""
        self.chat_history: list[ChatMessage] = []
        self.continuation_token = None
        self.inventory: list[InventoryItem] = []
        self.locations: list[Location] = []
        self.current_location_id: str | None = None
        self.npcs: list[Npc] = []
        self.story_events: list[StoryEvent] = []
        self.story_facts: list[StoryFact] = []
        self.journal: list[JournalEntry] = []

    # ------------------------------------------------------------------
    # Chat log
    # ------------------------------------------------------------------

    def append_message(self, message: ChatMessage) -> None:
        self.chat_history.append(message)
        if len(self.chat_history) > MAX_MESSAGES:
            self.chat_history = self.chat_history[-MAX_MESSAGES:]

    def remove_message(self, message: ChatMessage) -> None:
        """Remove one message object from the log, if still present."""
        self.chat_history = [m for m in self.chat_history if m is not message]

    def set_continuation_token(self, token: list[int] | None) -> None:
        if token is not None and len(token) >= MAX_CONTEXT_TOKENS:
            logger.warning(
                "Continuation token too large (%d >= %d), dropping it",
                len(token), MAX_CONTEXT_TOKENS,
            )
            token = None
        self.continuation_token = token

    def trim(self, max_messages: int) -> None:
        """Keep only the newest max_messages and invalidate the token."""
        if max_messages <= 0:
            self.chat_history = []
        else:
            self.chat_history = self.chat_history[-max_messages:]
        self.continuation_token = None

    # ------------------------------------------------------------------
    # Command application
    # ------------------------------------------------------------------

    def apply_commands(self, commands: Iterable[Any]) -> None:
        """Apply narrator commands in order. Unknown kinds are skipped."""
        for cmd in commands:
            if isinstance(cmd, AddItem):
                self.add_item(InventoryItem(
                    id=cmd.id, name=cmd.name,
                    description=cmd.description, quantity=cmd.quantity,
                ))
            elif isinstance(cmd, RemoveItem):
                self.remove_item(cmd.id, cmd.quantity)
            elif isinstance(cmd, SetLocation):
                self.add_location(Location(
                    id=cmd.id, name=cmd.name, description=cmd.description,
                ))
            elif isinstance(cmd, AddNpc):
                self.add_npc(Npc(
                    id=cmd.id, name=cmd.name, description=cmd.description,
                    current_location_id=cmd.location_id or self.current_location_id,
                ))
            elif isinstance(cmd, AddStoryEvent):
                self.add_story_event(cmd.description)
            elif isinstance(cmd, AddStoryFact):
                self.add_story_fact(cmd.fact, cmd.importance)
            else:
                logger.warning("Unknown command %r, skipped", getattr(cmd, "type", cmd))

    def add_item(self, item: InventoryItem) -> None:
        for existing in self.inventory:
            if existing.id == item.id:
                existing.quantity += item.quantity
                return
        self.inventory.append(item.model_copy())

    def remove_item(self, item_id: str, amount: int = 1) -> None:
        for i, existing in enumerate(self.inventory):
            if existing.id == item_id:
                if existing.quantity <= amount:
                    self.inventory.pop(i)
                else:
                    existing.quantity -= amount
                return

    def add_location(self, location: Location) -> None:
        """Record a location and make it current. First record of an id wins."""
        if not any(loc.id == location.id for loc in self.locations):
            self.locations.append(location)
        self.current_location_id = location.id

    def add_npc(self, npc: Npc) -> None:
        """Record an NPC; a known NPC only moves to its new location."""
        for existing in self.npcs:
            if existing.id == npc.id:
                existing.current_location_id = npc.current_location_id
                return
        self.npcs.append(npc)

    def add_story_event(self, description: str) -> StoryEvent:
        event = StoryEvent(
            id=_new_id(),
            description=description,
            location_id=self.current_location_id,
        )
        self.story_events.append(event)
        if len(self.story_events) > MAX_EVENTS:
            self.story_events = self.story_events[-MAX_EVENTS:]
        return event

    def add_story_fact(self, fact: str, importance: Importance = "minor") -> StoryFact | None:
        """Remember a fact. Returns None when an equal fact is already known."""
        key = fact.strip().lower()
        if not key or any(f.fact.strip().lower() == key for f in self.story_facts):
            return None
        new = StoryFact(id=_new_id(), fact=fact.strip(), importance=importance)
        self.story_facts.append(new)
        if len(self.story_facts) > MAX_FACTS:
            self.evict_facts()
        return new

    def evict_facts(self) -> None:
        """Drop facts beyond MAX_FACTS: minor before major before critical,
        oldest first within a rank. Survivors keep their order."""
        if len(self.story_facts) <= MAX_FACTS:
            return
        ranked = sorted(
            enumerate(self.story_facts),
            key=lambda p: (_SEVERITY[p[1].importance], -p[1].timestamp, -p[0]),
        )
        keep = {i for i, _ in ranked[:MAX_FACTS]}
        dropped = len(self.story_facts) - len(keep)
        self.story_facts = [f for i, f in enumerate(self.story_facts) if i in keep]
        logger.debug("Evicted %d story fact(s)", dropped)

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def add_journal_entry(self, title: str, content: str) -> JournalEntry:
        entry = JournalEntry(id=_new_id(), title=title, content=content)
        self.journal.append(entry)
        return entry

    def update_journal_entry(self, entry_id: str, updates: dict[str, Any]) -> JournalEntry:
        for i, entry in enumerate(self.journal):
            if entry.id == entry_id:
                fields = {k: v for k, v in updates.items() if k in ("title", "content", "ai_summary")}
                self.journal[i] = entry.model_copy(update=fields)
                return self.journal[i]
        raise KeyError(entry_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_location(self) -> Location | None:
        if self.current_location_id is None:
            return None
        for loc in self.locations:
            if loc.id == self.current_location_id:
                return loc
        return None

    def npcs_at_current_location(self) -> list[Npc]:
        if self.current_location_id is None:
            return []
        return [n for n in self.npcs if n.current_location_id == self.current_location_id]

    def recent_events(self, count: int = 3) -> list[StoryEvent]:
        if count <= 0:
            return []
        return self.story_events[-count:]

    def facts(self) -> list[StoryFact]:
        return list(self.story_facts)

    # ------------------------------------------------------------------
    # Persistence projection
    # ------------------------------------------------------------------

    def to_snapshot(self) -> MemorySnapshot:
        return MemorySnapshot(
            selected_model=self.selected_model,
            system_prompt=self.system_prompt,
            chat_history=self.chat_history,
            inventory=self.inventory,
            locations=self.locations,
            current_location_id=self.current_location_id,
            npcs=self.npcs,
            story_events=self.story_events,
            story_facts=self.story_facts,
            journal=self.journal,
        )

    @classmethod
    def from_snapshot(cls, snapshot: MemorySnapshot) -> ConversationMemory:
        memory = cls(snapshot.selected_model, snapshot.system_prompt)
        memory.chat_history = list(snapshot.chat_history)[-MAX_MESSAGES:]
        memory.inventory = list(snapshot.inventory)
        memory.locations = list(snapshot.locations)
        memory.current_location_id = snapshot.current_location_id
        memory.npcs = list(snapshot.npcs)
        memory.story_events = list(snapshot.story_events)[-MAX_EVENTS:]
        memory.story_facts = list(snapshot.story_facts)
        memory.evict_facts()
        memory.journal = list(snapshot.journal)
        return memory

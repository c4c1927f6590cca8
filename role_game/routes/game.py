"""Game state, chat and journal endpoints.

Chat and story start stream newline-delimited JSON:
  {"type": "update", "text": "..."}      one per streamed fragment
  {"type": "result", "status": ..., ...}  once, at the end
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from role_game import storage
from role_game.pipeline import GameSession, TurnResult
from role_game.prompts import StoryConfig

from .deps import get_session
from .models import (
    ChatBody,
    CreateJournalEntry,
    OptimizeBody,
    UpdateGame,
    UpdateJournalEntry,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _game_state(session: GameSession) -> dict:
    memory = session.memory
    state = memory.to_snapshot().model_dump(mode="json")
    state["busy"] = session.busy
    token = memory.continuation_token
    state["context_length"] = len(token) if token else 0
    return state


def _stream_turn(run: Callable[[Callable[[str], None]], Awaitable[TurnResult]]) -> StreamingResponse:
    queue: asyncio.Queue = asyncio.Queue()

    async def _run() -> TurnResult:
        try:
            return await run(queue.put_nowait)
        finally:
            queue.put_nowait(None)

    async def _events() -> AsyncIterator[str]:
        task = asyncio.create_task(_run())
        try:
            while True:
                text = await queue.get()
                if text is None:
                    break
                yield json.dumps({"type": "update", "text": text}) + "\n"
            result = await task
            yield json.dumps({"type": "result", **result.model_dump(mode="json")}) + "\n"
        finally:
            # A live task here means the client disconnected mid-turn
            if not task.done():
                logger.info("Client disconnected, cancelling turn")
                task.cancel()
            elif not task.cancelled() and task.exception() is not None:
                logger.error("Turn failed: %s", task.exception())

    return StreamingResponse(_events(), media_type="application/x-ndjson")


@router.get("/game")
async def get_game(session: GameSession = Depends(get_session)):
    """Current game state (chat log, inventory, locations, NPCs, facts, journal)."""
    return _game_state(session)


@router.patch("/game")
async def update_game(body: UpdateGame, session: GameSession = Depends(get_session)):
    """Update game settings (system prompt)."""
    if body.system_prompt is not None:
        session.memory.system_prompt = body.system_prompt
        session.changed()
    return _game_state(session)


@router.delete("/game")
async def new_game(session: GameSession = Depends(get_session)):
    """Abort any generation and wipe the story. Model and system prompt stay."""
    session.abort_generation()
    session.memory.clear()
    session.changed()
    return _game_state(session)


@router.post("/game/start")
async def start_story(config: StoryConfig, session: GameSession = Depends(get_session)):
    """Generate the opening scene of a new story."""
    if not session.memory.selected_model:
        raise HTTPException(400, "No model selected")
    if session.memory.chat_history:
        raise HTTPException(400, "Story already started")
    return _stream_turn(lambda on_update: session.initialize_story(config, on_update))


@router.post("/game/chat")
async def chat(body: ChatBody, session: GameSession = Depends(get_session)):
    """Send a player message and stream the narrator's response."""
    if not session.memory.selected_model:
        raise HTTPException(400, "No model selected")
    if not body.message.strip():
        raise HTTPException(400, "Message is empty")
    return _stream_turn(lambda on_update: session.send_message(body.message, on_update))


@router.post("/game/abort")
async def abort(session: GameSession = Depends(get_session)):
    """Stop the in-flight generation."""
    was_busy = session.busy
    session.abort_generation()
    return {"aborted": was_busy}


@router.post("/game/optimize")
async def optimize(body: OptimizeBody | None = None, session: GameSession = Depends(get_session)):
    """Trim chat history and clear the continuation token."""
    keep = body.keep if body and body.keep is not None else storage.get_config()["optimize_keep_messages"]
    session.optimize_memory(keep)
    return _game_state(session)


@router.post("/game/journal")
async def add_journal_entry(body: CreateJournalEntry, session: GameSession = Depends(get_session)):
    """Add a player note to the journal."""
    if not body.content.strip():
        raise HTTPException(400, "Journal entry is empty")
    entry = session.memory.add_journal_entry(body.title, body.content.strip())
    session.changed()
    return entry.model_dump()


@router.patch("/game/journal/{entry_id}")
async def update_journal_entry(
    entry_id: str,
    body: UpdateJournalEntry,
    session: GameSession = Depends(get_session),
):
    """Edit a journal entry."""
    try:
        entry = session.memory.update_journal_entry(entry_id, body.model_dump(exclude_none=True))
    except KeyError:
        raise HTTPException(404, "Journal entry not found")
    session.changed()
    return entry.model_dump()

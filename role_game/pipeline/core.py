"""Turn loop: one player message in, one narrated response out.

Per turn:
  1. Append the player message and an empty assistant placeholder.
  2. Build the request: player input + context reminder + movement directive.
  3. Stream the generation. After every fragment the full accumulated text
     is re-cleaned and shown; commands found during streaming are ignored.
  4. When the stream completes, parse the full text once (tags, then
     fallbacks) and apply the commands to memory exactly once.
  5. Store the continuation token from the final fragment.

Only one generation runs per session. Starting another (new message, story
start, model switch) aborts the one in flight first; an aborted turn keeps
its partial text but applies nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, Field

from role_game import llm
from role_game.memory import ConversationMemory
from role_game.models import ChatMessage, Command
from role_game.prompts import SYSTEM_INSTRUCTION_SUFFIX, StoryConfig, build_init_prompt

from .context import build_context_summary
from .fallback import extract_commands
from .movement import detect_movement_intent
from .tags import display_text

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_TIMEOUT = 180.0
RECENT_EVENT_COUNT = 3

TIMEOUT_MESSAGE = (
    "The model server did not finish in time. It may still be loading the "
    "model into memory, so try again in a moment."
)

TurnStatus = Literal["ok", "cancelled", "error", "timeout", "skipped"]


class TurnResult(BaseModel):
    status: TurnStatus
    text: str = ""
    commands: list[Command] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class GameSession:
    """Drives generations against one ConversationMemory.

    Args:
        memory:             The game's state handle.
        client:             Model server client.
        generation_timeout: Wall-clock bound for one generation, in seconds.
        options:            Extra /api/generate options (num_ctx etc.).
        on_change:          Called with the memory after every turn that
                            changed it (used for persistence).
    """

    def __init__(
        self,
        memory: ConversationMemory,
        client: llm.OllamaClient,
        *,
        generation_timeout: float = DEFAULT_GENERATION_TIMEOUT,
        options: dict[str, Any] | None = None,
        on_change: Callable[[ConversationMemory], None] | None = None,
    ) -> None:
        self.memory = memory
        self.client = client
        self.generation_timeout = generation_timeout
        self.options = dict(options or {})
        self._on_change = on_change
        self._cancel: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def abort_generation(self) -> None:
        """Stop the in-flight generation, if any."""
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def build_request(self, player_input: str) -> str:
        """Player input plus the context reminder and any movement directive."""
        m = self.memory
        reminder = build_context_summary(
            m.current_location(),
            m.inventory,
            m.npcs_at_current_location(),
            m.recent_events(RECENT_EVENT_COUNT),
            m.facts(),
        )
        intent = detect_movement_intent(player_input)
        if intent.kind != "none":
            logger.debug("Movement intent %s → %r", intent.kind, intent.destination)
        return player_input + reminder + intent.directive

    async def send_message(
        self,
        player_input: str,
        on_update: Callable[[str], None] | None = None,
    ) -> TurnResult:
        if not player_input.strip() or not self.memory.selected_model:
            return TurnResult(status="skipped")

        self.abort_generation()
        self.memory.append_message(ChatMessage(role="user", content=player_input))
        prompt = self.build_request(player_input)
        return await self._run_turn(prompt, self.memory.continuation_token, on_update)

    async def initialize_story(
        self,
        config: StoryConfig | None = None,
        on_update: Callable[[str], None] | None = None,
    ) -> TurnResult:
        """Generate the opening scene. Only runs on an empty story."""
        if not self.memory.selected_model or self.memory.chat_history:
            return TurnResult(status="skipped")

        self.abort_generation()
        return await self._run_turn(build_init_prompt(config), None, on_update)

    async def switch_model(self, model: str) -> None:
        """Change the narrator model, unloading the previous one."""
        previous = self.memory.selected_model
        if previous and previous != model:
            self.abort_generation()
            await self.client.unload_model(previous)
            # Tokens are model-specific
            self.memory.set_continuation_token(None)
        self.memory.selected_model = model
        self.changed()

    def optimize_memory(self, keep: int = 20) -> None:
        self.memory.trim(keep)
        self.changed()

    # ------------------------------------------------------------------

    async def _run_turn(
        self,
        prompt: str,
        context: list[int] | None,
        on_update: Callable[[str], None] | None,
    ) -> TurnResult:
        placeholder = ChatMessage(role="assistant", content="")
        self.memory.append_message(placeholder)

        cancel = asyncio.Event()
        task = asyncio.create_task(
            self._stream(prompt, context, cancel, placeholder, on_update)
        )
        self._cancel = cancel
        self._task = task

        try:
            full_text, token = await task
        except asyncio.CancelledError:
            if not cancel.is_set():
                raise
            logger.info("Generation aborted")
            return TurnResult(status="cancelled", text=placeholder.content)
        except (TimeoutError, llm.LLMTimeoutError):
            logger.warning("Generation timed out after %ss", self.generation_timeout)
            self._fail(placeholder, TIMEOUT_MESSAGE)
            return TurnResult(status="timeout", error=TIMEOUT_MESSAGE)
        except llm.LLMError as e:
            logger.error("Generation failed: %s", e)
            self._fail(placeholder, f"Error: {e}")
            return TurnResult(status="error", error=str(e))
        finally:
            if self._task is task:
                self._task = None
                self._cancel = None

        if cancel.is_set():
            logger.info("Generation aborted")
            return TurnResult(status="cancelled", text=placeholder.content)

        result = TurnResult(status="ok")
        if full_text.strip():
            parsed = extract_commands(full_text)
            if parsed.clean_text.strip():
                placeholder.content = parsed.clean_text
            self.memory.apply_commands(parsed.commands)
            if token is not None:
                self.memory.set_continuation_token(token)
            result.text = parsed.clean_text
            result.commands = parsed.commands
            logger.debug("Turn applied %d command(s)", len(parsed.commands))

        self.changed()
        return result

    async def _stream(
        self,
        prompt: str,
        context: list[int] | None,
        cancel: asyncio.Event,
        placeholder: ChatMessage,
        on_update: Callable[[str], None] | None,
    ) -> tuple[str, list[int] | None]:
        full_text = ""
        token: list[int] | None = None

        async with asyncio.timeout(self.generation_timeout):
            async for part in self.client.generate_stream(
                self.memory.selected_model,
                prompt,
                context=context,
                system=self.memory.system_prompt + SYSTEM_INSTRUCTION_SUFFIX,
                options=self.options,
                cancel=cancel,
            ):
                if part.text:
                    full_text += part.text
                    shown = display_text(full_text)
                    placeholder.content = shown
                    if on_update is not None:
                        on_update(shown)
                if part.is_final:
                    token = part.continuation_token

        return full_text, token

    def _fail(self, placeholder: ChatMessage, content: str) -> None:
        if not placeholder.content:
            self.memory.remove_message(placeholder)
        self.memory.append_message(ChatMessage(role="system", content=content))
        self.changed()

    def changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.memory)

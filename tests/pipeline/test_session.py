"""Tests for GameSession with a scripted model client."""

import asyncio
from dataclasses import dataclass, field
from unittest.mock import AsyncMock, patch

from role_game import llm
from role_game.memory import ConversationMemory
from role_game.models import Fragment, Location
from role_game.pipeline.core import TIMEOUT_MESSAGE, GameSession
from role_game.prompts import SYSTEM_INSTRUCTION_SUFFIX, StoryConfig, build_init_prompt


@dataclass
class Script:
    """One scripted generation."""

    chunks: list[str] = field(default_factory=list)
    token: list[int] | None = None
    hang: bool = False
    error: Exception | None = None


class FakeClient:
    def __init__(self, *scripts: Script) -> None:
        self.scripts = list(scripts)
        self.calls: list[dict] = []
        self.unload_model = AsyncMock(return_value=True)

    async def generate_stream(self, model, prompt, context=None, system=None, options=None, cancel=None):
        self.calls.append({
            "model": model, "prompt": prompt, "context": context,
            "system": system, "options": options,
        })
        script = self.scripts.pop(0)
        if script.error is not None:
            raise script.error
        for text in script.chunks:
            await asyncio.sleep(0)
            if cancel is not None and cancel.is_set():
                return
            yield Fragment(text=text)
        if script.hang:
            await asyncio.Event().wait()
        yield Fragment(is_final=True, continuation_token=script.token)


def _session(*scripts: Script, **kwargs) -> tuple[GameSession, FakeClient]:
    client = FakeClient(*scripts)
    memory = ConversationMemory(selected_model="llama3")
    return GameSession(memory, client, **kwargs), client


# ---------------------------------------------------------------------------
# Completed turns
# ---------------------------------------------------------------------------

class TestSendMessage:
    async def test_tag_split_across_fragments_applied_once(self) -> None:
        session, _ = _session(Script(
            chunks=["You find ", "[ITEM_ADD: Rusty", " Key|Old|1]", " and smile."],
            token=[4, 5, 6],
        ))
        updates: list[str] = []
        with patch.object(session.memory, "apply_commands", wraps=session.memory.apply_commands) as spy:
            result = await session.send_message("I search the chest", updates.append)

        assert result.ok
        spy.assert_called_once()
        assert [i.id for i in session.memory.inventory] == ["rusty-key"]
        assert session.memory.inventory[0].quantity == 1
        assert all("[" not in u for u in updates)
        assert session.memory.chat_history[-1].content == "You find  and smile."
        assert session.memory.continuation_token == [4, 5, 6]

    async def test_request_carries_token_system_and_options(self) -> None:
        session, client = _session(
            Script(chunks=["Hello."], token=[7, 8]),
            Script(chunks=["Again."], token=[9]),
            options={"num_ctx": 8192},
        )
        await session.send_message("Hi")
        await session.send_message("Hi again")

        assert client.calls[0]["context"] is None
        assert client.calls[1]["context"] == [7, 8]
        assert client.calls[1]["system"] == session.memory.system_prompt + SYSTEM_INSTRUCTION_SUFFIX
        assert client.calls[1]["options"] == {"num_ctx": 8192}
        assert session.memory.continuation_token == [9]

    async def test_history_records_both_sides(self) -> None:
        session, _ = _session(Script(chunks=["The road is long."]))
        await session.send_message("I walk north")
        roles = [(m.role, m.content) for m in session.memory.chat_history]
        assert roles == [("user", "I walk north"), ("assistant", "The road is long.")]

    async def test_fallback_commands_applied(self) -> None:
        session, _ = _session(Script(chunks=["You enter the chapel. ", "You grab a candle."]))
        await session.send_message("I go inside")
        assert session.memory.current_location().name == "Chapel"
        assert [i.name for i in session.memory.inventory] == ["Candle"]

    async def test_oversized_token_dropped(self) -> None:
        session, _ = _session(Script(chunks=["Ok."], token=[0] * 25000))
        await session.send_message("Hi")
        assert session.memory.continuation_token is None

    async def test_empty_input_skipped(self) -> None:
        session, client = _session()
        result = await session.send_message("   ")
        assert result.status == "skipped"
        assert client.calls == []
        assert session.memory.chat_history == []

    async def test_no_model_skipped(self) -> None:
        session, client = _session()
        session.memory.selected_model = ""
        assert (await session.send_message("Hello")).status == "skipped"
        assert client.calls == []

    async def test_on_change_called_after_turn(self) -> None:
        seen: list[int] = []
        session, _ = _session(
            Script(chunks=["Ok."]),
            on_change=lambda memory: seen.append(len(memory.chat_history)),
        )
        await session.send_message("Hi")
        assert seen == [2]


class TestBuildRequest:
    def test_appends_context_and_directive(self) -> None:
        session, _ = _session()
        session.memory.add_location(Location(id="inn", name="Inn", description=""))
        request = session.build_request("I go to the docks")
        assert request.startswith("I go to the docks\n\n[STORY CONTEXT")
        assert "Current location: Inn" in request
        assert "MOVEMENT COMMAND" in request

    def test_plain_input_untouched(self) -> None:
        session, _ = _session()
        assert session.build_request("I wait") == "I wait"


# ---------------------------------------------------------------------------
# Failures and aborts
# ---------------------------------------------------------------------------

class TestFailures:
    async def test_server_error_appends_system_message(self) -> None:
        session, _ = _session(Script(error=llm.LLMError("Cannot connect to model server at http://x")))
        result = await session.send_message("Hello")
        assert result.status == "error"
        assert "Cannot connect" in result.error
        roles = [m.role for m in session.memory.chat_history]
        assert roles == ["user", "system"]
        assert session.memory.chat_history[-1].content.startswith("Error: Cannot connect")
        assert not session.busy

    async def test_timeout(self) -> None:
        session, _ = _session(Script(hang=True), generation_timeout=0.05)
        result = await session.send_message("Hello")
        assert result.status == "timeout"
        assert session.memory.chat_history[-1].role == "system"
        assert session.memory.chat_history[-1].content == TIMEOUT_MESSAGE
        assert session.memory.inventory == []

    async def test_timeout_keeps_partial_text(self) -> None:
        session, _ = _session(Script(chunks=["You pick up a torch"], hang=True), generation_timeout=0.05)
        await session.send_message("Hello")
        roles = [m.role for m in session.memory.chat_history]
        assert roles == ["user", "assistant", "system"]
        assert session.memory.inventory == []

    async def test_abort_keeps_partial_text_and_applies_nothing(self) -> None:
        session, _ = _session(Script(chunks=["You find a torch. ", "[ITEM_ADD: Torch|Lit|1]"], hang=True))
        started = asyncio.Event()
        with patch.object(session.memory, "apply_commands") as spy:
            task = asyncio.create_task(session.send_message("I search", lambda _: started.set()))
            await started.wait()
            assert session.busy
            session.abort_generation()
            result = await task

        assert result.status == "cancelled"
        assert result.text.startswith("You find a torch.")
        spy.assert_not_called()
        assert session.memory.inventory == []
        assert session.memory.chat_history[-1].content == result.text
        assert not session.busy

    async def test_new_message_aborts_previous(self) -> None:
        session, client = _session(
            Script(chunks=["The road winds"], hang=True),
            Script(chunks=["You arrive."], token=[3]),
        )
        started = asyncio.Event()
        first = asyncio.create_task(session.send_message("I walk", lambda _: started.set()))
        await started.wait()

        second = await session.send_message("I run")
        first_result = await first

        assert first_result.status == "cancelled"
        assert second.ok
        assert [(m.role, m.content) for m in session.memory.chat_history] == [
            ("user", "I walk"),
            ("assistant", "The road winds"),
            ("user", "I run"),
            ("assistant", "You arrive."),
        ]
        assert session.memory.continuation_token == [3]
        assert len(client.calls) == 2


# ---------------------------------------------------------------------------
# Story start, model switching, memory optimisation
# ---------------------------------------------------------------------------

class TestInitializeStory:
    async def test_uses_init_prompt_without_context(self) -> None:
        session, client = _session(Script(chunks=["[LOCATION: Tavern|Smoky] Welcome."], token=[1]))
        session.memory.set_continuation_token([42])
        config = StoryConfig(genre="horror", starting_option="tavern")

        result = await session.initialize_story(config)

        assert result.ok
        assert client.calls[0]["prompt"] == build_init_prompt(config)
        assert client.calls[0]["context"] is None
        assert session.memory.current_location().name == "Tavern"
        assert [m.role for m in session.memory.chat_history] == ["assistant"]

    async def test_skipped_when_story_exists(self) -> None:
        session, client = _session(Script(chunks=["Hi."]))
        await session.send_message("Hello")
        assert (await session.initialize_story()).status == "skipped"
        assert len(client.calls) == 1


class TestSwitchModel:
    async def test_unloads_previous_and_clears_token(self) -> None:
        session, client = _session()
        session.memory.set_continuation_token([1, 2])
        await session.switch_model("mistral")
        client.unload_model.assert_awaited_once_with("llama3")
        assert session.memory.selected_model == "mistral"
        assert session.memory.continuation_token is None

    async def test_same_model_is_noop(self) -> None:
        session, client = _session()
        session.memory.set_continuation_token([1, 2])
        await session.switch_model("llama3")
        client.unload_model.assert_not_awaited()
        assert session.memory.continuation_token == [1, 2]

    async def test_first_selection_does_not_unload(self) -> None:
        session, client = _session()
        session.memory.selected_model = ""
        await session.switch_model("llama3")
        client.unload_model.assert_not_awaited()


class TestOptimizeMemory:
    async def test_trims_and_clears_token(self) -> None:
        session, _ = _session(*[Script(chunks=[f"Reply {i}."]) for i in range(15)])
        for i in range(15):
            await session.send_message(f"Message {i}")
        session.memory.set_continuation_token([1])
        session.optimize_memory(20)
        assert len(session.memory.chat_history) == 20
        assert session.memory.chat_history[-1].content == "Reply 14."
        assert session.memory.continuation_token is None

"""Session wiring shared by the routers."""

from typing import Any

from fastapi import Request

from role_game import storage
from role_game.llm import OllamaClient
from role_game.memory import ConversationMemory
from role_game.pipeline import GameSession


def build_session(config: dict[str, Any]) -> GameSession:
    """Create the app's single game session, restoring any saved game."""
    memory = storage.load_game()
    if memory is None:
        memory = ConversationMemory(system_prompt=config["default_system_prompt"])
    session = GameSession(memory, OllamaClient(), on_change=storage.save_game)
    configure_session(session, config)
    return session


def configure_session(session: GameSession, config: dict[str, Any]) -> None:
    """Apply connection settings to a session (after a settings change)."""
    session.client = OllamaClient(
        config["ollama_url"],
        timeout=float(config["request_timeout"]),
    )
    session.generation_timeout = float(config["generation_timeout"])
    session.options = {"num_ctx": int(config["num_ctx"])}


def get_session(request: Request) -> GameSession:
    return request.app.state.session

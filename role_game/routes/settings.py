"""Health check, settings and model selection endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from role_game import storage
from role_game.llm import LLMError
from role_game.pipeline import GameSession

from .deps import configure_session, get_session
from .models import SelectModelBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get global app settings."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict, session: GameSession = Depends(get_session)):
    """Update global app settings (partial merge) and reconnect."""
    config = storage.update_config(body)
    configure_session(session, config)
    return config


@router.get("/models")
async def list_models(session: GameSession = Depends(get_session)):
    """List models installed on the model server."""
    try:
        models = await session.client.list_models()
    except LLMError as e:
        raise HTTPException(502, str(e))
    return {
        "models": [m.model_dump() for m in models],
        "selected": session.memory.selected_model,
    }


@router.post("/models/select")
async def select_model(body: SelectModelBody, session: GameSession = Depends(get_session)):
    """Switch the narrator model. The previous model is unloaded."""
    if not body.model.strip():
        raise HTTPException(400, "Model name is required")
    await session.switch_model(body.model.strip())
    return {"selected": session.memory.selected_model}

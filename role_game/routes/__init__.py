"""FastAPI API endpoints under /api.

Endpoint groups: health + settings + model selection, and the game itself
(state, story start, chat streaming, abort, memory optimisation, journal).
The app holds one GameSession in app.state.session.
"""

from fastapi import APIRouter

from .game import router as game_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(game_router)

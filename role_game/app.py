import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from role_game import storage
from role_game.routes import router
from role_game.routes.deps import build_session

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)

    app = FastAPI(title="Role Game")
    app.state.session = build_session(storage.get_config())
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()

from __future__ import annotations  # FastAPI server exposing the voice interview loop

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.live import AdapterFactory, InMemoryLiveSessions, default_adapters
from api.routes import router as session_router
from config import load_config, settings
from interview_evaluation import bind_session_evaluator
from question_source import bind_question_generator
from storage.migrate import migrate


logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_S = 10.0


def bind_models(config_path: Path) -> bool:
    """Bind LLM-backed generator and evaluator when an app config is present."""

    if not config_path.exists():
        logger.warning("App config %s not found; LLM models stay unbound", config_path)
        return False
    cfg = load_config(config_path)
    bind_question_generator(cfg)
    bind_session_evaluator(cfg)
    return True


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    migrate(settings.DB_PATH)
    if app.state.bind_models:
        bind_models(Path(settings.APP_CONFIG_PATH))
    yield
    live = app.state.live_sessions.all()
    for session in live:
        session.orchestrator.abort()
    tasks = [session.task for session in live if session.task is not None]
    if tasks:
        await asyncio.wait(tasks, timeout=SHUTDOWN_GRACE_S)


def create_app(adapter_factory: Optional[AdapterFactory] = None, *, bind_llm_models: bool = True) -> FastAPI:
    app = FastAPI(title="Voice Interview API", lifespan=_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.adapter_factory = adapter_factory or default_adapters
    app.state.live_sessions = InMemoryLiveSessions()
    app.state.bind_models = bind_llm_models
    app.include_router(session_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

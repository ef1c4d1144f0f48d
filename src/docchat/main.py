import argparse
import logging
from typing import Any, Callable, Optional, Sequence, TypeVar

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from docchat.api import router as documents_router
from docchat.config import get_settings
from docchat.errors import DocChatError
from docchat.logging_config import configure_logging
from docchat.services.sessions import get_session_manager
from docchat.telemetry import emit_app_startup_event

_settings = get_settings()
configure_logging(_settings.log_level, _settings.log_dir)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="DocChat API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_settings.cors_allow_origins),
    allow_credentials="*" not in _settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(documents_router)


@app.on_event("startup")
async def _log_startup() -> None:
    emit_app_startup_event()


T = TypeVar("T")


def _resolve_dependency(factory: Callable[[], T]) -> T:
    """Resolve a dependency while respecting FastAPI overrides."""

    override: Any | None = app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved() if callable(resolved) else resolved


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    return "DocChat backend is running."


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness check used by container orchestrators."""
    return "ok"


@app.get("/readyz", response_class=PlainTextResponse)
def readiness_check() -> str:
    """Readiness check: ensure the providers and vector store can be built and reached."""

    try:
        manager = _resolve_dependency(get_session_manager)
    except (DocChatError, ValueError) as exc:
        raise HTTPException(status_code=503, detail=f"session_manager_unavailable: {exc}") from exc

    problems = manager.readiness_problems()
    if problems:
        raise HTTPException(status_code=503, detail="; ".join(problems))
    return "ok"


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point of the ``docchat-server`` console script."""

    parser = argparse.ArgumentParser(description="Run the DocChat HTTP API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args(argv)

    LOGGER.info("Starting DocChat API on %s:%s", args.host, args.port)
    uvicorn.run("docchat.main:app", host=args.host, port=args.port, reload=args.reload, log_config=None)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    run()

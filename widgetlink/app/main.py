"""
widgetlink diagnostics app.

FastAPI application exposing the binding mode and resolved state of every
widget in the registered sessions, plus a declaration checker for page
builders.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from widgetlink import __version__
from widgetlink.app.dependencies import SessionRegistry, get_app_settings, get_sessions
from widgetlink.config import WidgetSettings
from widgetlink.connections import (
    InvalidSpecError,
    describe_connection,
    detect_mode,
    parse_connection,
)

settings = get_app_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close every registered session on shutdown."""
    logger.info("Starting widgetlink diagnostics...")
    yield
    logger.info("Shutting down widgetlink diagnostics...")
    try:
        get_sessions().close_all()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="widgetlink",
    description="Diagnostics for widget data connections",
    version=__version__,
    lifespan=lifespan,
    debug=settings.is_development,
)


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "status": "running",
    }


@app.get("/health", tags=["health"])
async def health_check(
    sessions: SessionRegistry = Depends(get_sessions),
    app_settings: WidgetSettings = Depends(get_app_settings),
) -> dict[str, Any]:
    return {
        "status": "healthy",
        "environment": app_settings.environment,
        "sessions": len(sessions),
    }


@app.get("/api/v1/sessions", tags=["sessions"])
async def list_sessions(sessions: SessionRegistry = Depends(get_sessions)) -> dict[str, Any]:
    return {"sessions": sessions.list_ids()}


@app.get("/api/v1/sessions/{session_id}/widgets", tags=["sessions"])
async def list_widgets(
    session_id: str,
    sessions: SessionRegistry = Depends(get_sessions),
) -> dict[str, Any]:
    """Per-widget binding mode and resolved state."""
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {
        "session_id": session_id,
        "context": session.context.describe(),
        "widgets": session.describe(),
    }


@app.post("/api/v1/connections/check", tags=["connections"])
async def check_connection(definition: dict[str, Any]) -> dict[str, Any]:
    """Validate a connection declaration and report its binding mode."""
    try:
        spec = parse_connection(definition)
    except InvalidSpecError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "valid": True,
        "kind": spec.kind.value,
        "mode": detect_mode(spec).value,
        "connection_type": describe_connection(spec),
        "source": spec.to_dict(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "widgetlink.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )

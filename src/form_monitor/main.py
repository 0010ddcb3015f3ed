"""
FastAPI entry point for the live form monitor.

Endpoints:
    GET  /health
    GET  /api/monitor/status
    POST /api/monitor/start          {authenticated, exercise?}
    POST /api/monitor/stop
    GET  /api/monitor/feedback
    GET  /api/monitor/stats
    PUT  /api/monitor/exercise       {exercise: str | null}
    GET  /api/monitor/notifications

The engine runs on the server's event loop; every endpoint is ``async`` so
engine calls never leave that loop.

Run:
    uvicorn form_monitor.main:app --host 0.0.0.0 --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Suppress noisy TF / MediaPipe logs before any TF import
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "3")

from .pipelines.state import FeedbackResult, SessionStats
from .session.builder import build_engine
from .session.scheduler import EngineState, FormMonitorEngine, MonitorSnapshot, MonitorStatus
from .utils.io_utils import load_settings
from .utils.notifications import Notification, QueueNotificationSink

logger = logging.getLogger("form_monitor")


# ============================================================================
# Pydantic request / response models
# ============================================================================

class StartRequest(BaseModel):
    authenticated: bool = Field(False, description="Caller is signed in (bypasses the trial gate)")
    exercise: Optional[str] = Field(None, description="Optional manual exercise to pin")


class ExerciseRequest(BaseModel):
    exercise: Optional[str] = Field(None, description="Exercise name, or null for auto detection")


class FeedbackResponse(BaseModel):
    feedback: Optional[FeedbackResult] = None
    detected_exercise: Optional[str] = None


class ErrorResponse(BaseModel):
    error_code: str
    message: str


_START_ERRORS = {
    MonitorStatus.LIMIT_REACHED: (
        403,
        "TRIAL_LIMIT_REACHED",
        "Free trial sessions used up. Sign up or log in to continue.",
    ),
    MonitorStatus.CAMERA_UNAVAILABLE: (
        503,
        "CAMERA_UNAVAILABLE",
        "Camera access denied or no camera available.",
    ),
    MonitorStatus.BACKEND_UNAVAILABLE: (
        503,
        "BACKEND_UNAVAILABLE",
        "Pose detection could not be initialized.",
    ),
}


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error_code=code, message=message).model_dump(),
    )


# ============================================================================
# App factory
# ============================================================================

def create_app(
    engine: Optional[FormMonitorEngine] = None,
    notifier: Optional[QueueNotificationSink] = None,
) -> FastAPI:
    """Build the HTTP app around *engine* (default: configured from settings).

    ``/api/monitor/notifications`` drains *notifier*, falling back to the
    engine's own sink when that is a queue.
    """
    if engine is None:
        notifier = notifier or QueueNotificationSink()
        engine = build_engine(load_settings(), notifier=notifier)
    if notifier is None:
        if isinstance(engine.notifier, QueueNotificationSink):
            notifier = engine.notifier
        else:
            notifier = QueueNotificationSink()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting live form monitor …")
        await engine.initialize()
        logger.info("Pose backend ready: %s", engine.active_backend)
        yield
        engine.close()
        logger.info("Shutting down.")

    app = FastAPI(
        title="Live Form Monitor API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.notifier = notifier

    # CORS for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Health / status
    # ------------------------------------------------------------------
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/monitor/status", response_model=MonitorSnapshot)
    async def status():
        return engine.snapshot()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @app.post(
        "/api/monitor/start",
        response_model=MonitorSnapshot,
        responses={
            403: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def start(request: StartRequest):
        if engine.state is not EngineState.IDLE:
            return _error(409, "ALREADY_RUNNING", "A monitoring session is already active.")

        await engine.start(authenticated=request.authenticated)

        if engine.is_running:
            # The first cycle has not fired yet, so the pin covers every frame.
            if request.exercise is not None:
                engine.pin_exercise(request.exercise)
            return engine.snapshot()
        error = _START_ERRORS.get(MonitorStatus(engine.status))
        if error is None:
            return _error(500, "START_FAILED", f"Session did not start (status '{engine.status}').")
        return _error(*error)

    @app.post("/api/monitor/stop", response_model=SessionStats)
    async def stop():
        engine.stop()
        return engine.session_stats

    # ------------------------------------------------------------------
    # Live data
    # ------------------------------------------------------------------
    @app.get("/api/monitor/feedback", response_model=FeedbackResponse)
    async def feedback():
        detected = engine.detected_exercise
        return FeedbackResponse(
            feedback=engine.current_feedback,
            detected_exercise=detected.display_name if detected else None,
        )

    @app.get("/api/monitor/stats", response_model=SessionStats)
    async def stats():
        return engine.session_stats

    @app.put("/api/monitor/exercise", response_model=MonitorSnapshot)
    async def pin_exercise(request: ExerciseRequest):
        engine.pin_exercise(request.exercise)
        return engine.snapshot()

    @app.get("/api/monitor/notifications", response_model=List[Notification])
    async def notifications():
        return notifier.drain()

    return app


def _create_default_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    return create_app()


app = _create_default_app()

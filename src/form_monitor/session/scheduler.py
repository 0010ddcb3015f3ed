"""
Frame loop scheduler.

``FormMonitorEngine`` drives the acquire -> estimate -> analyze -> publish
cycle while a session is active:

    IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE

Each cycle is requested from a ``FrameClock`` and runs on the asyncio event
loop. The pose estimate is the only suspending step; the next cycle is
requested only after it settles, so at most one estimate is in flight and
feedback is published in frame order. ``stop()`` may be called at any point:
a settled estimate is discarded unless it belongs to the still-active session.
A session started while the previous one's estimate is still running waits
on the estimator for it to settle.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from pydantic import BaseModel

from ..backends.registry import BackendRegistry
from ..pipelines.analysis import analyze_pose
from ..pipelines.config import PREFERRED_BACKEND
from ..pipelines.state import ExerciseLabel, FeedbackResult, Frame, Pose, SessionStats
from ..utils.notifications import LoggingNotificationSink, NotificationKind, NotificationSink
from .access import AccessGate, GateDecision
from .estimator import PoseEstimator, best_pose
from .sources import FrameSource
from .stats import SessionStatsAggregator

logger = logging.getLogger(__name__)

CycleCallback = Callable[[], Awaitable[None]]


# ============================================================================
# Frame clocks
# ============================================================================

class FrameClock(Protocol):
    def request(self, callback: CycleCallback) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class _ClockHandle:
    __slots__ = ("timer", "task")

    def __init__(self):
        self.timer: Optional[asyncio.Handle] = None
        self.task: Optional[asyncio.Task] = None


class AsyncioFrameClock:
    """Schedules cycles on the running event loop.

    Without ``max_fps`` the next cycle runs on the next loop iteration, so the
    cadence follows the frame source and the backend. With ``max_fps`` cycles
    are spaced at least ``1 / max_fps`` seconds apart.
    """

    def __init__(self, max_fps: Optional[float] = None):
        if max_fps is not None and max_fps <= 0:
            raise ValueError(f"max_fps must be positive, got {max_fps}.")
        self.max_fps = max_fps
        self._last_fire: Optional[float] = None

    def request(self, callback: CycleCallback) -> _ClockHandle:
        loop = asyncio.get_running_loop()
        handle = _ClockHandle()

        def fire():
            self._last_fire = loop.time()
            handle.task = loop.create_task(callback())

        delay = 0.0
        if self.max_fps and self._last_fire is not None:
            delay = max(0.0, 1.0 / self.max_fps - (loop.time() - self._last_fire))
        if delay > 0:
            handle.timer = loop.call_later(delay, fire)
        else:
            handle.timer = loop.call_soon(fire)
        return handle

    def cancel(self, handle: _ClockHandle) -> None:
        # Only the not-yet-fired request is cancelled; a running cycle sees
        # the inactive session when its estimate settles.
        if handle is not None and handle.timer is not None:
            handle.timer.cancel()


# ============================================================================
# Engine state
# ============================================================================

class EngineState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class MonitorStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    RUNNING = "running"
    LIMIT_REACHED = "limit_reached"
    CAMERA_UNAVAILABLE = "camera_unavailable"
    BACKEND_UNAVAILABLE = "backend_unavailable"


class MonitorSnapshot(BaseModel):
    """Everything the UI observes about the engine."""
    status: MonitorStatus
    state: EngineState
    current_feedback: Optional[FeedbackResult] = None
    session_stats: SessionStats
    active_backend: Optional[str] = None
    available_backends: List[str]
    backend_status: str
    detected_exercise: Optional[str] = None
    pinned_exercise: Optional[str] = None
    trials_used: int
    trial_limit: int


Listener = Callable[[MonitorSnapshot], None]


# ============================================================================
# Engine
# ============================================================================

class FormMonitorEngine:
    """Live exercise-form monitoring engine.

    Args:
        registry: Backend registry (must contain a fallback backend).
        source_factory: Creates a fresh frame source per session.
        gate: Access gate for unauthenticated callers.
        notifier: User notification sink.
        clock: Frame clock; defaults to ``AsyncioFrameClock()``.
        stats: Session statistics aggregator.
        overlay: Optional renderer with ``render(frame, pose, feedback)``.
        preferred_backend: Backend selected on ``initialize``.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        source_factory: Callable[[], FrameSource],
        gate: AccessGate,
        notifier: Optional[NotificationSink] = None,
        clock: Optional[FrameClock] = None,
        stats: Optional[SessionStatsAggregator] = None,
        overlay=None,
        preferred_backend: str = PREFERRED_BACKEND,
    ):
        self.registry = registry
        self.estimator = PoseEstimator(registry)
        self.source_factory = source_factory
        self.gate = gate
        self.notifier = notifier or LoggingNotificationSink()
        self.clock = clock or AsyncioFrameClock()
        self.stats = stats or SessionStatsAggregator()
        self.overlay = overlay
        self.preferred_backend = preferred_backend

        self._state = EngineState.IDLE
        self._status = MonitorStatus.IDLE
        self._initialized = False
        self._active = False
        self._generation = 0
        self._source: Optional[FrameSource] = None
        self._pending = None
        self._current_feedback: Optional[FeedbackResult] = None
        self._current_pose: Optional[Pose] = None
        self._pinned: Optional[ExerciseLabel] = None
        self._detected: Optional[ExerciseLabel] = None
        self._available: List[str] = [registry.fallback.name]
        self._listeners: List[Listener] = []
        self.frames_processed = 0

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def status(self) -> str:
        return self._status.value

    @property
    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    @property
    def current_feedback(self) -> Optional[FeedbackResult]:
        return self._current_feedback

    @property
    def current_pose(self) -> Optional[Pose]:
        return self._current_pose

    @property
    def session_stats(self) -> SessionStats:
        return self.stats.snapshot()

    @property
    def available_backends(self) -> List[str]:
        return list(self._available)

    @property
    def active_backend(self) -> Optional[str]:
        return self.registry.active_name

    @property
    def detected_exercise(self) -> Optional[ExerciseLabel]:
        """Auto-classified label of the last analyzed frame (diagnostic when pinned)."""
        return self._detected

    @property
    def pinned_exercise(self) -> Optional[ExerciseLabel]:
        return self._pinned

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            status=self._status,
            state=self._state,
            current_feedback=self._current_feedback,
            session_stats=self.session_stats,
            active_backend=self.active_backend,
            available_backends=self.available_backends,
            backend_status=str(self.registry.get_status()),
            detected_exercise=self._detected.display_name if self._detected else None,
            pinned_exercise=self._pinned.name if self._pinned else None,
            trials_used=self.gate.used,
            trial_limit=self.gate.limit,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Engine listener failed")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def pin_exercise(self, name: Optional[str]) -> None:
        """Pin a manual exercise label; ``None`` returns to auto classification."""
        self._pinned = ExerciseLabel.manual(name) if name else None
        logger.info("Exercise mode: %s", f"manual ({name})" if name else "auto")
        self._emit()

    async def initialize(self) -> None:
        """Read the trial counter, probe backends and select the preferred one."""
        self._status = MonitorStatus.LOADING
        self.gate.refresh()
        self._available = await self.registry.probe_availability()
        await self.registry.select(self.preferred_backend)
        self._initialized = True

        if self.registry.is_ready:
            self._status = MonitorStatus.READY
            backend = self.registry.active
            self.notifier.push(
                f"Pose detection ready ({backend.display_name})", NotificationKind.SUCCESS
            )
        else:
            self._status = MonitorStatus.BACKEND_UNAVAILABLE
            self.notifier.push(
                "Could not initialize pose detection.", NotificationKind.ERROR
            )
        self._emit()

    async def select_backend(self, name: str) -> bool:
        """Switch backend while idle. Returns False when a session is running."""
        if self._state is not EngineState.IDLE:
            logger.warning("Cannot switch backend while a session is active.")
            return False
        await self.registry.select(name)
        self._emit()
        return self.registry.active_name == name

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, authenticated: bool = False) -> None:
        """Start a monitoring session. Never raises."""
        if self._state is not EngineState.IDLE:
            logger.info("start() ignored, engine is %s", self._state.value)
            return

        if self.gate.check(authenticated) is GateDecision.LIMIT_REACHED:
            self._status = MonitorStatus.LIMIT_REACHED
            self.notifier.push(
                f"You've used your {self.gate.limit} free trial sessions. "
                "Sign up or log in to continue using real-time form monitoring.",
                NotificationKind.WARNING,
            )
            self._emit()
            return

        self._state = EngineState.STARTING
        try:
            await self._start_session(authenticated)
        except Exception:
            logger.exception("Unexpected error while starting the session")
            self._abort_start(MonitorStatus.IDLE)

    async def _start_session(self, authenticated: bool) -> None:
        if not self._initialized:
            await self.initialize()
        elif not self.registry.is_ready:
            await self.registry.select(self.preferred_backend)

        if self._state is not EngineState.STARTING:
            logger.info("Session start cancelled by stop().")
            return

        if not self.registry.is_ready:
            self.notifier.push(
                "Pose detection is unavailable. Monitoring cannot start.",
                NotificationKind.ERROR,
            )
            self._abort_start(MonitorStatus.BACKEND_UNAVAILABLE)
            return

        try:
            source = self.source_factory()
            source.open()
        except Exception as exc:
            logger.error("Error accessing camera: %s", exc)
            self.notifier.push(
                "Camera access denied. Please allow camera access to use form monitoring.",
                NotificationKind.ERROR,
            )
            self._abort_start(MonitorStatus.CAMERA_UNAVAILABLE)
            return

        self._source = source
        self._generation += 1
        self._active = True
        self._current_feedback = None
        self._current_pose = None
        self._detected = None
        self.frames_processed = 0
        self.stats.start()

        try:
            self.gate.record_start(authenticated)
        except OSError as exc:
            logger.warning("Could not persist trial counter: %s", exc)

        self._state = EngineState.RUNNING
        self._status = MonitorStatus.RUNNING
        self.notifier.push("Real-time form monitoring started", NotificationKind.SUCCESS)
        self._emit()
        self._schedule_next()

    def _abort_start(self, status: MonitorStatus) -> None:
        self._active = False
        if self._pending is not None:
            self.clock.cancel(self._pending)
            self._pending = None
        self._release_source()
        if self.stats.is_active:
            self.stats.stop()
        self._state = EngineState.IDLE
        self._status = status
        self._emit()

    def stop(self) -> None:
        """Stop the session. Idempotent and safe while an estimate is pending."""
        if self._state is EngineState.IDLE:
            return
        self._state = EngineState.STOPPING
        self._active = False

        if self._pending is not None:
            self.clock.cancel(self._pending)
            self._pending = None

        self._release_source()
        if self.stats.is_active:
            self.stats.stop()

        self._current_feedback = None
        self._current_pose = None
        self._state = EngineState.IDLE
        self._status = MonitorStatus.READY if self.registry.is_ready else MonitorStatus.IDLE
        self._emit()

    def _release_source(self) -> None:
        if self._source is None:
            return
        try:
            self._source.release()
        except Exception as exc:
            logger.warning("Error releasing frame source: %s", exc)
        self._source = None

    def close(self) -> None:
        self.stop()
        self.registry.close()
        if self.overlay is not None and hasattr(self.overlay, "close"):
            self.overlay.close()

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------
    def _is_current(self, generation: int) -> bool:
        return self._active and generation == self._generation

    def _schedule_next(self) -> None:
        if self._active:
            self._pending = self.clock.request(self._run_cycle)

    async def _run_cycle(self) -> None:
        self._pending = None
        generation = self._generation
        if not self._is_current(generation):
            return

        try:
            frame = self._source.read()
        except Exception as exc:
            logger.warning("Frame read failed: %s", exc)
            frame = None

        if frame is None:
            if getattr(self._source, "exhausted", False):
                logger.info("Frame source exhausted, stopping session.")
                self.stop()
                return
        else:
            poses = await self.estimator.estimate(frame)
            if not self._is_current(generation):
                logger.debug("Discarding estimate for frame %d, session stopped.", frame.index)
                return
            try:
                self._process(frame, poses)
            except Exception:
                logger.exception("Analysis failed on frame %d", frame.index)

        if self._is_current(generation):
            self._schedule_next()

    def _process(self, frame: Frame, poses: List[Pose]) -> None:
        pose = best_pose(poses)
        self._current_pose = pose

        analysis = analyze_pose(pose, self._pinned)
        if analysis is not None:
            self._detected = analysis.detected
            self._current_feedback = analysis.feedback
            self.stats.record(analysis.feedback)
            self.frames_processed += 1
            self._emit()

        if self.overlay is not None:
            self.overlay.render(frame, pose, self._current_feedback)

"""
Backend registry and selector.

Holds the registered pose backends, probes which of them initialize, and
keeps exactly one active. Exactly one backend must be the never-failing
fallback; every initialization failure degrades to it, so no error from
backend setup ever reaches the frame loop.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from ..utils.notifications import LoggingNotificationSink, NotificationKind, NotificationSink
from .base import BackendKind, PoseBackend

logger = logging.getLogger(__name__)


class BackendState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class BackendStatus(BaseModel):
    state: BackendState = BackendState.UNINITIALIZED
    backend: Optional[str] = None
    reason: Optional[str] = None

    def __str__(self) -> str:
        if self.state is BackendState.FAILED:
            return f"failed: {self.reason}"
        return self.state.value


class BackendRegistry:
    """Ordered collection of backends with a guaranteed fallback.

    Args:
        backends: Backends in preference order.
        notifier: Sink for non-fatal initialization failures.
        configs: Optional per-backend ``initialize`` config, keyed by name.
    """

    def __init__(
        self,
        backends: Iterable[PoseBackend],
        notifier: Optional[NotificationSink] = None,
        configs: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self._backends: Dict[str, PoseBackend] = {}
        for backend in backends:
            if backend.name in self._backends:
                raise ValueError(f"Duplicate backend name '{backend.name}'.")
            self._backends[backend.name] = backend

        fallbacks = [b for b in self._backends.values() if b.kind is BackendKind.FALLBACK]
        if len(fallbacks) != 1:
            raise ValueError(
                f"Exactly one fallback backend is required, got {len(fallbacks)}."
            )
        self._fallback = fallbacks[0]
        self._notifier = notifier or LoggingNotificationSink()
        self._configs = configs or {}
        self._active: Optional[PoseBackend] = None
        self._status = BackendStatus()
        self.last_failure: Optional[str] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def names(self) -> List[str]:
        return list(self._backends)

    @property
    def fallback(self) -> PoseBackend:
        return self._fallback

    @property
    def active(self) -> Optional[PoseBackend]:
        return self._active

    @property
    def active_name(self) -> Optional[str]:
        return self._active.name if self._active else None

    def get(self, name: str) -> PoseBackend:
        return self._backends[name]

    def get_status(self) -> BackendStatus:
        return self._status

    @property
    def is_ready(self) -> bool:
        return self._status.state is BackendState.READY and self._active is not None

    # ------------------------------------------------------------------
    # Probing / selection
    # ------------------------------------------------------------------
    async def _try_initialize(self, backend: PoseBackend) -> Optional[str]:
        """Initialize *backend*; return the failure reason, or None on success."""
        try:
            await backend.initialize(self._configs.get(backend.name))
        except Exception as exc:
            return f"{type(exc).__name__}: {exc}"
        return None

    async def probe_availability(self) -> List[str]:
        """Return the names of backends that initialize, in preference order.

        The fallback is always included.
        """
        available = []
        for name, backend in self._backends.items():
            reason = await self._try_initialize(backend)
            if reason is None:
                available.append(name)
                if backend is not self._active and backend is not self._fallback:
                    backend.close()
            else:
                logger.info("Backend '%s' unavailable (%s)", name, reason)
        if self._fallback.name not in available:
            # The fallback cannot fail by contract; keep it listed regardless.
            available.append(self._fallback.name)
        logger.info("Available pose backends: %s", available)
        return available

    async def select(self, name: str) -> PoseBackend:
        """Make *name* the active backend, degrading to the fallback on failure."""
        self._status = BackendStatus(state=BackendState.INITIALIZING, backend=name)

        backend = self._backends.get(name)
        if backend is None:
            reason = f"unknown backend '{name}'"
        else:
            reason = await self._try_initialize(backend)

        if reason is None:
            self._activate(backend)
            logger.info("Active pose backend: %s", backend.display_name)
            return backend

        self.last_failure = reason
        self._status = BackendStatus(state=BackendState.FAILED, backend=name, reason=reason)
        logger.warning("Backend '%s' failed to initialize: %s, using fallback.", name, reason)
        self._notifier.push(
            f"Could not initialize pose detection ({name}). Using {self._fallback.display_name}.",
            NotificationKind.WARNING,
        )
        return await self._select_fallback()

    async def _select_fallback(self) -> PoseBackend:
        fallback = self._fallback
        reason = await self._try_initialize(fallback)
        if reason is not None:
            # Contract violation by the fallback implementation.
            logger.error("Fallback backend '%s' failed: %s", fallback.name, reason)
            self._status = BackendStatus(
                state=BackendState.FAILED, backend=fallback.name, reason=reason
            )
            self._active = None
            return fallback
        self._activate(fallback)
        return fallback

    def _activate(self, backend: PoseBackend) -> None:
        if self._active is not None and self._active is not backend:
            self._active.close()
        self._active = backend
        self._status = BackendStatus(state=BackendState.READY, backend=backend.name)

    def close(self) -> None:
        for backend in self._backends.values():
            backend.close()
        self._active = None
        self._status = BackendStatus()

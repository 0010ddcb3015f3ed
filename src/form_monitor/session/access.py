"""
Access gate for unauthenticated monitoring sessions.

The trial counter lives in an injected store that outlives the engine and
the process. Authenticated callers bypass the gate and never touch it.
"""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..pipelines.config import TRIAL_COUNTER_KEY, TRIAL_COUNTER_PATH, TRIAL_LIMIT

logger = logging.getLogger(__name__)


# ============================================================================
# Counter stores
# ============================================================================

class TrialCounterStore(Protocol):
    def get(self, key: str) -> int:
        ...

    def set(self, key: str, value: int) -> None:
        ...


class InMemoryCounterStore:
    """Process-local store, mainly for tests and authenticated deployments."""

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._values: Dict[str, int] = dict(initial or {})

    def get(self, key: str) -> int:
        return int(self._values.get(key, 0))

    def set(self, key: str, value: int) -> None:
        self._values[key] = int(value)


class JsonFileCounterStore:
    """Device-persisted counters in a small JSON file.

    Writes go through a temp file + ``os.replace`` so a crash never leaves a
    truncated file behind.
    """

    def __init__(self, path: Path = TRIAL_COUNTER_PATH):
        self.path = Path(path)

    def _load(self) -> Dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read trial counter file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def get(self, key: str) -> int:
        try:
            return max(int(self._load().get(key, 0)), 0)
        except (TypeError, ValueError):
            return 0

    def set(self, key: str, value: int) -> None:
        data = self._load()
        data[key] = max(int(value), 0)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


# ============================================================================
# Gate
# ============================================================================

class GateDecision(str, Enum):
    ALLOWED = "allowed"
    BYPASS = "bypass"
    LIMIT_REACHED = "limit_reached"


class AccessGate:
    """Caps monitoring sessions for unauthenticated callers.

    Args:
        store: Persisted counter store.
        limit: Number of free sessions.
        key: Counter key inside the store.
    """

    def __init__(
        self,
        store: TrialCounterStore,
        limit: int = TRIAL_LIMIT,
        key: str = TRIAL_COUNTER_KEY,
    ):
        if limit < 0:
            raise ValueError(f"Trial limit must be non-negative, got {limit}.")
        self.store = store
        self.limit = limit
        self.key = key
        self.used = self.store.get(self.key)

    def refresh(self) -> int:
        self.used = self.store.get(self.key)
        return self.used

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    def check(self, authenticated: bool) -> GateDecision:
        if authenticated:
            return GateDecision.BYPASS
        if self.refresh() >= self.limit:
            return GateDecision.LIMIT_REACHED
        return GateDecision.ALLOWED

    def record_start(self, authenticated: bool) -> int:
        """Count one successful unauthenticated session start."""
        if authenticated:
            return self.used
        self.used = self.store.get(self.key) + 1
        self.store.set(self.key, self.used)
        logger.info("Trial session %d/%d used", self.used, self.limit)
        return self.used

"""
Session statistics aggregator.

Append-only feedback history for the active session, with running counts
and a final snapshot that stays readable until the next session starts.
"""

import logging
import time
from typing import Callable, Optional, Tuple

from ..pipelines.state import FeedbackResult, SessionStats, Severity

logger = logging.getLogger(__name__)


def good_form_percentage(history: Tuple[FeedbackResult, ...]) -> float:
    """Share of GOOD verdicts in percent; 0 for an empty history."""
    if not history:
        return 0.0
    good = sum(1 for f in history if f.severity is Severity.GOOD)
    return 100.0 * good / len(history)


class SessionStatsAggregator:
    """Accumulates feedback for one session at a time.

    Args:
        clock: Wall-clock source in seconds (``time.time`` by default).
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._history: list[FeedbackResult] = []
        self._start: Optional[float] = None
        self._active = False
        self._stats = SessionStats()

    @property
    def history(self) -> Tuple[FeedbackResult, ...]:
        return tuple(self._history)

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> SessionStats:
        self._history = []
        self._start = self._clock()
        self._active = True
        self._stats = SessionStats(start_timestamp=self._start)
        return self._stats

    def record(self, feedback: FeedbackResult) -> SessionStats:
        """Append *feedback* and refresh the live counters."""
        if not self._active:
            logger.debug("Ignoring feedback recorded outside an active session.")
            return self._stats
        self._history.append(feedback)
        history = self.history
        self._stats = SessionStats(
            start_timestamp=self._start,
            duration_seconds=max(self._clock() - self._start, 0.0),
            feedback_count=len(history),
            good_form_percentage=good_form_percentage(history),
        )
        return self._stats

    def stop(self) -> SessionStats:
        """Finalize the snapshot. Calling it again returns the frozen snapshot."""
        if not self._active:
            return self._stats
        self._active = False
        history = self.history
        self._stats = SessionStats(
            start_timestamp=self._start,
            duration_seconds=max(self._clock() - self._start, 0.0),
            feedback_count=len(history),
            good_form_percentage=good_form_percentage(history),
            finalized=True,
        )
        logger.info(
            "Session finished: %.1fs, %d feedback, %.0f%% good form",
            self._stats.duration_seconds,
            self._stats.feedback_count,
            self._stats.good_form_percentage,
        )
        return self._stats

    def snapshot(self) -> SessionStats:
        return self._stats

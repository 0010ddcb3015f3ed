"""Tests for the session statistics aggregator."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.pipelines.state import FeedbackResult, Severity
from form_monitor.session.stats import SessionStatsAggregator, good_form_percentage


class _FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _make_feedback(severity: Severity) -> FeedbackResult:
    return FeedbackResult(message=severity.value, severity=severity, confidence=0.8)


class TestGoodFormPercentage:

    def test_empty_history(self):
        assert good_form_percentage(()) == 0.0

    def test_mixed(self):
        history = (
            _make_feedback(Severity.GOOD),
            _make_feedback(Severity.WARNING),
            _make_feedback(Severity.GOOD),
            _make_feedback(Severity.ERROR),
        )
        assert good_form_percentage(history) == pytest.approx(50.0)


class TestSessionStatsAggregator:

    def test_zero_feedback_session(self):
        clock = _FakeClock()
        agg = SessionStatsAggregator(clock=clock)
        agg.start()
        stats = agg.stop()
        assert stats.feedback_count == 0
        assert stats.good_form_percentage == 0.0
        assert stats.duration_seconds == pytest.approx(0.0)
        assert stats.finalized

    def test_live_counters_and_final_duration(self):
        clock = _FakeClock()
        agg = SessionStatsAggregator(clock=clock)
        agg.start()
        for severity in (Severity.GOOD, Severity.GOOD, Severity.WARNING):
            clock.now += 1.0
            live = agg.record(_make_feedback(severity))
        assert live.feedback_count == 3
        assert live.good_form_percentage == pytest.approx(200.0 / 3)
        assert not live.finalized

        clock.now += 2.0
        final = agg.stop()
        assert final.duration_seconds == pytest.approx(5.0)
        assert final.start_timestamp == pytest.approx(1000.0)

    def test_stop_is_idempotent(self):
        clock = _FakeClock()
        agg = SessionStatsAggregator(clock=clock)
        agg.start()
        first = agg.stop()
        clock.now += 60.0
        assert agg.stop() == first
        assert agg.snapshot() == first

    def test_record_outside_session_is_ignored(self):
        agg = SessionStatsAggregator(clock=_FakeClock())
        agg.record(_make_feedback(Severity.GOOD))
        assert agg.history == ()
        agg.start()
        agg.stop()
        agg.record(_make_feedback(Severity.GOOD))
        assert agg.snapshot().feedback_count == 0

    def test_start_resets_history(self):
        agg = SessionStatsAggregator(clock=_FakeClock())
        agg.start()
        agg.record(_make_feedback(Severity.WARNING))
        agg.stop()
        agg.start()
        assert agg.history == ()
        assert agg.snapshot().feedback_count == 0
        assert not agg.snapshot().finalized

    def test_history_is_read_only(self):
        agg = SessionStatsAggregator(clock=_FakeClock())
        agg.start()
        agg.record(_make_feedback(Severity.GOOD))
        assert isinstance(agg.history, tuple)

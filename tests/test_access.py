"""Tests for the trial access gate and counter stores."""

import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.session.access import (
    AccessGate,
    GateDecision,
    InMemoryCounterStore,
    JsonFileCounterStore,
)

KEY = "workout_monitor_trials"


class TestAccessGate:

    def test_allows_until_limit(self):
        gate = AccessGate(InMemoryCounterStore(), limit=2)
        assert gate.check(False) is GateDecision.ALLOWED
        gate.record_start(False)
        assert gate.check(False) is GateDecision.ALLOWED
        gate.record_start(False)
        assert gate.check(False) is GateDecision.LIMIT_REACHED
        assert gate.remaining == 0

    def test_limit_reached_does_not_touch_counter(self):
        store = InMemoryCounterStore({KEY: 2})
        gate = AccessGate(store, limit=2)
        assert gate.check(False) is GateDecision.LIMIT_REACHED
        assert store.get(KEY) == 2

    def test_authenticated_bypasses_and_never_counts(self):
        store = InMemoryCounterStore({KEY: 5})
        gate = AccessGate(store, limit=2)
        assert gate.check(True) is GateDecision.BYPASS
        gate.record_start(True)
        assert store.get(KEY) == 5

    def test_reads_counter_at_construction(self):
        gate = AccessGate(InMemoryCounterStore({KEY: 1}), limit=2)
        assert gate.used == 1
        assert gate.remaining == 1

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            AccessGate(InMemoryCounterStore(), limit=-1)


class TestJsonFileCounterStore:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state" / "trials.json"
        AccessGate(JsonFileCounterStore(path), limit=2).record_start(False)

        gate = AccessGate(JsonFileCounterStore(path), limit=2)
        assert gate.used == 1
        gate.record_start(False)
        assert json.loads(path.read_text()) == {KEY: 2}
        assert gate.check(False) is GateDecision.LIMIT_REACHED

    def test_missing_file_reads_zero(self, tmp_path):
        assert JsonFileCounterStore(tmp_path / "nope.json").get(KEY) == 0

    def test_corrupt_file_reads_zero(self, tmp_path):
        path = tmp_path / "trials.json"
        path.write_text("{not json")
        assert JsonFileCounterStore(path).get(KEY) == 0

    def test_keeps_other_keys(self, tmp_path):
        path = tmp_path / "trials.json"
        path.write_text(json.dumps({"other": 7}))
        JsonFileCounterStore(path).set(KEY, 1)
        assert json.loads(path.read_text()) == {"other": 7, KEY: 1}

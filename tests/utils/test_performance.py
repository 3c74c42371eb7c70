"""
Unit tests for engine performance tracking.
"""

import logging

import pytest

from billcycle.utils.performance import EnginePerformanceTracker


class TestEnginePerformanceTracker:

    def test_records_stages_and_counts(self):
        with EnginePerformanceTracker("generate_due") as tracker:
            with tracker.stage("fetch"):
                pass
            with tracker.stage("schedule"):
                pass
            tracker.set_template_count(3)
            tracker.set_results_produced(2)

        metrics = tracker.metrics
        assert metrics.elapsed_ms is not None
        assert set(metrics.stage_ms) == {"fetch", "schedule"}
        assert metrics.to_dict()['template_count'] == 3
        assert metrics.to_dict()['results_produced'] == 2

    def test_logs_completion(self, caplog):
        with caplog.at_level(logging.INFO, logger="billcycle.utils.performance"):
            with EnginePerformanceTracker("forecast"):
                pass
        assert any("Engine operation completed: forecast" in r.message for r in caplog.records)

    def test_slow_operation_logged_as_error(self, caplog):
        with caplog.at_level(logging.INFO, logger="billcycle.utils.performance"):
            with EnginePerformanceTracker("forecast", warn_threshold_ms=-2, error_threshold_ms=-1):
                pass
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_exception_propagates(self, caplog):
        with pytest.raises(RuntimeError):
            with EnginePerformanceTracker("forecast"):
                raise RuntimeError("boom")
        assert any("failed: boom" in r.message for r in caplog.records)

"""
Performance monitoring utilities for engine batch runs.

Tracks elapsed time for detection, scheduling, forecasting and scoring runs,
broken down by stage, and logs the result at a level chosen by how slow the
run was.
"""

import time
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class EnginePerformanceMetrics:
    """Container for engine operation performance metrics."""
    operation_name: str
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    elapsed_ms: Optional[float] = None
    template_count: int = 0
    transaction_count: int = 0
    results_produced: int = 0
    failures: int = 0
    stage_ms: Dict[str, float] = field(default_factory=dict)

    def finish(self):
        """Mark the operation as finished and calculate elapsed time."""
        self.end_time = time.time()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging."""
        return {
            'operation_name': self.operation_name,
            'elapsed_ms': self.elapsed_ms,
            'template_count': self.template_count,
            'transaction_count': self.transaction_count,
            'results_produced': self.results_produced,
            'failures': self.failures,
            'stage_ms': dict(self.stage_ms),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    def log_metrics(self, warn_threshold_ms: float = 2000, error_threshold_ms: float = 10000):
        """Log the performance metrics."""
        metrics = self.to_dict()
        elapsed = self.elapsed_ms or 0.0

        if elapsed > error_threshold_ms:
            logger.error(
                f"SLOW ENGINE OPERATION: {self.operation_name} took {elapsed:.2f}ms",
                extra={'engine_metrics': metrics}
            )
        elif elapsed > warn_threshold_ms:
            logger.warning(
                f"Slow engine operation: {self.operation_name} took {elapsed:.2f}ms",
                extra={'engine_metrics': metrics}
            )
        else:
            logger.info(
                f"Engine operation completed: {self.operation_name} in {elapsed:.2f}ms",
                extra={'engine_metrics': metrics}
            )

        if self.stage_ms:
            breakdown = ', '.join(f"{stage}: {ms:.2f}ms" for stage, ms in self.stage_ms.items())
            logger.debug(
                f"Engine operation breakdown for {self.operation_name}: {breakdown}",
                extra={'engine_metrics': metrics}
            )


class StageTimer:
    """Context manager recording one stage's elapsed time into the metrics."""

    def __init__(self, metrics: EnginePerformanceMetrics, stage: str):
        self.metrics = metrics
        self.stage = stage
        self.start_time: float = 0.0

    def __enter__(self):
        self.start_time = time.time()
        logger.debug(f"Starting stage: {self.stage}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = (time.time() - self.start_time) * 1000
        self.metrics.stage_ms[self.stage] = elapsed_ms
        logger.debug(f"Completed stage {self.stage} in {elapsed_ms:.2f}ms")


class EnginePerformanceTracker:
    """
    Context manager for tracking an engine batch run.

    Usage:
        with EnginePerformanceTracker("generate_due") as tracker:
            with tracker.stage('fetch'):
                templates = store.fetch_active_templates()
            tracker.set_template_count(len(templates))

            with tracker.stage('schedule'):
                result = scheduler.generate_due(now, templates)
            tracker.set_results_produced(len(result.mutations))
    """

    def __init__(self, operation_name: str, warn_threshold_ms: float = 2000, error_threshold_ms: float = 10000):
        self.metrics = EnginePerformanceMetrics(operation_name=operation_name)
        self.warn_threshold_ms = warn_threshold_ms
        self.error_threshold_ms = error_threshold_ms

    def __enter__(self):
        logger.info(f"Starting engine operation: {self.metrics.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.metrics.finish()
        if exc_type is not None:
            logger.error(
                f"Engine operation {self.metrics.operation_name} failed: {exc_val}",
                extra={'engine_metrics': self.metrics.to_dict()}
            )
        self.metrics.log_metrics(self.warn_threshold_ms, self.error_threshold_ms)

    def stage(self, stage_name: str) -> StageTimer:
        """Create a context manager for tracking a stage."""
        return StageTimer(self.metrics, stage_name)

    def set_template_count(self, count: int):
        self.metrics.template_count = count

    def set_transaction_count(self, count: int):
        self.metrics.transaction_count = count

    def set_results_produced(self, count: int):
        self.metrics.results_produced = count

    def set_failures(self, count: int):
        self.metrics.failures = count

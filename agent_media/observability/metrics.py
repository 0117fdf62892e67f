"""
Prometheus metrics collection for agent-media.

This module provides:
- Action execution counters by action, provider and outcome
- Action duration histograms
- Provider resolution failure counters
- Remote API call counters and durations
- Local model load counters
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from ..core.config import settings


class MetricsCollector:
    """Central metrics collector for the toolkit."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Initialize all metrics."""

        self.app_info = Info(
            'agent_media_info',
            'Toolkit information',
            registry=self.registry
        )
        self.app_info.info({
            'version': settings.app.version,
            'environment': settings.app.environment,
            'name': settings.app.app_name
        })

        # Action metrics
        self.actions_total = Counter(
            'agent_media_actions_total',
            'Total executed actions',
            ['action', 'provider', 'status'],
            registry=self.registry
        )

        self.action_duration = Histogram(
            'agent_media_action_duration_seconds',
            'Action execution duration in seconds',
            ['action', 'provider'],
            buckets=[0.05, 0.25, 1.0, 5.0, 15.0, 60.0, 180.0, 600.0],
            registry=self.registry
        )

        self.output_size = Histogram(
            'agent_media_output_size_bytes',
            'Size of produced media files in bytes',
            ['action'],
            buckets=[1024, 16384, 262144, 1048576, 10485760, 104857600],
            registry=self.registry
        )

        self.resolution_failures_total = Counter(
            'agent_media_resolution_failures_total',
            'Requests for which no provider could be resolved',
            ['action', 'code'],
            registry=self.registry
        )

        # Remote API metrics
        self.external_api_calls_total = Counter(
            'agent_media_external_api_calls_total',
            'Total remote provider API calls',
            ['provider', 'status_code'],
            registry=self.registry
        )

        self.external_api_duration = Histogram(
            'agent_media_external_api_duration_seconds',
            'Remote provider API call duration in seconds',
            ['provider'],
            buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
            registry=self.registry
        )

        # Local inference
        self.model_loads_total = Counter(
            'agent_media_model_loads_total',
            'Local inference pipelines loaded',
            ['task', 'model'],
            registry=self.registry
        )

    def track_action(self, action: str, provider: str, status: str,
                     duration: float, output_bytes: int = 0):
        """Track one executed action."""
        self.actions_total.labels(
            action=action, provider=provider, status=status
        ).inc()

        self.action_duration.labels(
            action=action, provider=provider
        ).observe(duration)

        if output_bytes > 0:
            self.output_size.labels(action=action).observe(output_bytes)

    def track_resolution_failure(self, action: str, code: str):
        """Track a request no provider could serve."""
        self.resolution_failures_total.labels(action=action, code=code).inc()

    def track_external_api_call(self, provider: str, status_code: int, duration: float):
        """Track a remote API call."""
        self.external_api_calls_total.labels(
            provider=provider, status_code=str(status_code)
        ).inc()

        self.external_api_duration.labels(provider=provider).observe(duration)

    def track_model_load(self, task: str, model: str):
        """Track a local pipeline load."""
        self.model_loads_total.labels(task=task, model=model).inc()

    def get_metrics(self) -> bytes:
        """Exposition text for this collector's registry."""
        return generate_latest(self.registry)


# Process-wide collector used by the executor and HTTP helpers
metrics = MetricsCollector()


@contextmanager
def track_external_api_time(provider: str):
    """Time a remote call; the caller sets `call["status_code"]`."""
    call = {"status_code": 0}
    start_time = time.time()
    try:
        yield call
    finally:
        metrics.track_external_api_call(provider, call["status_code"], time.time() - start_time)


def get_metrics_text() -> str:
    """Metrics exposition text."""
    return metrics.get_metrics().decode("utf-8")


def get_test_metrics() -> MetricsCollector:
    """Collector on a private registry, so counts start from zero."""
    test_registry = CollectorRegistry()
    return MetricsCollector(test_registry)

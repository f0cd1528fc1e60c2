"""
Prometheus Metrics Collector for the compositor bridge.

Provides metrics for monitoring:
- Active input/output endpoints
- Registration attempts and port conflicts
- Control request outcomes and latency
- Compositor startup probing
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger("vcb.metrics")


ACTIVE_ENDPOINTS = Gauge(
    'vcb_active_endpoints',
    'Number of endpoints registered with the compositor',
    ['kind']  # 'input', 'output'
)
REGISTRATION_ATTEMPTS_TOTAL = Counter(
    'vcb_registration_attempts_total',
    'Endpoint registration attempts',
    ['kind', 'outcome']  # outcome: 'ok', 'error_response', 'transport_error'
)
UNREGISTRATIONS_TOTAL = Counter(
    'vcb_unregistrations_total',
    'Endpoint removals',
    ['kind', 'outcome']
)

CONTROL_REQUESTS_TOTAL = Counter(
    'vcb_control_requests_total',
    'Control requests sent to the compositor',
    ['action', 'outcome']
)
CONTROL_LATENCY = Histogram(
    'vcb_control_request_latency_seconds',
    'Control request round-trip latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

STARTUP_PROBES_TOTAL = Counter(
    'vcb_startup_probes_total',
    'Readiness probes sent while waiting for the compositor',
    ['answered']  # 'true', 'false'
)


class MetricsCollector:
    """
    Centralized metrics collector for the bridge.

    Provides convenient methods for recording metrics
    and starts the Prometheus HTTP server.
    """

    def __init__(self, port: int = 9090, host: str = "0.0.0.0"):
        """
        Initialize metrics collector.

        Args:
            port: Port for Prometheus HTTP server
            host: Host to bind to
        """
        self.port = port
        self.host = host
        self._started = False

    def start(self) -> bool:
        """
        Start the Prometheus HTTP server.

        Returns:
            True if started successfully
        """
        if self._started:
            return True

        try:
            start_http_server(self.port, addr=self.host)
            self._started = True
            logger.info(f"Prometheus metrics server started on {self.host}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    # Endpoint metrics
    def registration_attempt(self, kind: str, outcome: str) -> None:
        REGISTRATION_ATTEMPTS_TOTAL.labels(kind=kind, outcome=outcome).inc()

    def unregistration(self, kind: str, outcome: str) -> None:
        UNREGISTRATIONS_TOTAL.labels(kind=kind, outcome=outcome).inc()

    def update_endpoints(self, inputs: int, outputs: int) -> None:
        """Update active endpoint gauges."""
        ACTIVE_ENDPOINTS.labels(kind="input").set(inputs)
        ACTIVE_ENDPOINTS.labels(kind="output").set(outputs)

    # Control metrics
    def control_request(self, action: str, outcome: str, latency: float) -> None:
        """Record a control request."""
        CONTROL_REQUESTS_TOTAL.labels(action=action, outcome=outcome).inc()
        CONTROL_LATENCY.observe(latency)

    def startup_probe(self, answered: bool) -> None:
        STARTUP_PROBES_TOTAL.labels(answered=str(answered).lower()).inc()


# Global instance
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics

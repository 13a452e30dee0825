"""
Prometheus metrics for the Inspectr service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry


class Metrics:
    """
    Centralized metrics for capture, broadcast and fan-out.
    """

    def __init__(self, service_name: str = "inspectr", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Capture
        self.transactions_captured_total = Counter(
            "inspectr_transactions_captured_total",
            "Total finalized transactions",
            ["method", "status"],
            registry=self.registry,
        )

        self.decode_failures_total = Counter(
            "inspectr_decode_failures_total",
            "Request bodies that could not be decoded",
            ["reason"],
            registry=self.registry,
        )

        self.transaction_latency = Histogram(
            "inspectr_transaction_latency_ms",
            "Exchange latency in milliseconds",
            ["method"],
            buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self.registry,
        )

        # Broadcast
        self.broadcasts_total = Counter(
            "inspectr_broadcasts_total",
            "Envelopes sent to the broadcast sink",
            registry=self.registry,
        )

        self.broadcast_failures_total = Counter(
            "inspectr_broadcast_failures_total",
            "Broadcast requests that failed",
            registry=self.registry,
        )

        # Fan-out
        self.subscribers_active = Gauge(
            "inspectr_subscribers_active",
            "Number of connected push subscribers",
            registry=self.registry,
        )

        self.events_published_total = Counter(
            "inspectr_events_published_total",
            "Events fanned out to subscribers",
            registry=self.registry,
        )

        self.subscriber_write_failures_total = Counter(
            "inspectr_subscriber_write_failures_total",
            "Frames that could not be queued for a subscriber",
            registry=self.registry,
        )

    def record_transaction(self, method: str, status: int, latency_ms: int):
        """Record a finalized transaction."""
        self.transactions_captured_total.labels(method=method, status=str(status)).inc()
        self.transaction_latency.labels(method=method).observe(latency_ms)


# Global metrics instance
metrics = Metrics()

"""
Health check for liveness probes.
"""
from typing import Dict, Any

from .logging import get_logger
from .models import utc_timestamp
from .streaming.hub import SubscriberHub

logger = get_logger()


class HealthChecker:
    """
    Health checker for the Inspectr service.

    Reports that the process is up, the current server time and how many
    push subscribers are connected.
    """

    def __init__(self, hub: SubscriberHub, service_name: str = "inspectr", version: str = "0.1.0"):
        self.hub = hub
        self.service_name = service_name
        self.version = version

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - basic health check.

        Returns:
            dict: Health status with service info and server time
        """
        return {
            "status": "ok",
            "message": "Ok",
            "service": self.service_name,
            "version": self.version,
            "date": utc_timestamp(),
            "subscribers": self.hub.connection_count,
        }

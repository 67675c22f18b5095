"""
Health check for the load balancer / orchestrator probes.

Checks:
- Database connectivity through the payment store
"""
from typing import Any, Dict

import structlog

from payment_reconciler.database.store import PaymentStore

logger = structlog.get_logger(__name__)


class HealthCheck:
    """Health check service for the payment store dependency."""

    def __init__(self, store: PaymentStore) -> None:
        self.store = store

    async def check_database(self) -> Dict[str, Any]:
        """
        Check database connectivity.

        Returns:
            Dict[str, Any]: Database health status
        """
        try:
            await self.store.ping()
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "service": "database",
                "error": str(e),
            }

        return {
            "status": "healthy",
            "service": "database",
            "message": "Database connection successful",
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks = {"database": await self.check_database()}
        all_healthy = all(check["status"] == "healthy" for check in checks.values())

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

"""
Health Check Service

Probes the two dependencies the addon needs to serve streams:

    database    SQLite/SQL store holding releases, snapshots and locks
    realdebrid  provider account behind REAL_DEBRID_API_KEY (optional)

Probe results are cached for ``cache_ttl_seconds`` so frequent readiness
polling does not turn into a provider request per poll. The database is
critical: when it is down the overall status is unhealthy. A failing
provider only degrades the service, since peer-to-peer streams and the
cached fast path keep working.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Any

from sqlalchemy import text

from tamilarr.services.debrid_client import RealDebridClient
from tamilarr.services.exceptions import ProviderAPIError

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ServiceHealth:
    """Result of one dependency probe."""
    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)
    checked_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "checked_at": self.checked_at.isoformat(),
        }
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        if self.details:
            result["details"] = self.details
        return result


class HealthCheckService:
    """Dependency probes with a per-probe result cache."""

    def __init__(self, cache_ttl_seconds: int = 30):
        self.cache_ttl = cache_ttl_seconds
        self._cache: Dict[str, tuple] = {}

    async def _cached(self, name: str, probe: Callable[[], Awaitable[ServiceHealth]]) -> ServiceHealth:
        hit = self._cache.get(name)
        if hit is not None and time.monotonic() - hit[0] < self.cache_ttl:
            return hit[1]

        started = time.monotonic()
        health = await probe()
        if health.status == HealthStatus.HEALTHY:
            health.latency_ms = (time.monotonic() - started) * 1000
        self._cache[name] = (time.monotonic(), health)
        return health

    async def check_database(self, bind=None) -> ServiceHealth:
        """
        Run ``SELECT 1`` against the database.

        Args:
            bind: Engine to probe (defaults to the application engine)
        """
        if bind is None:
            from tamilarr.database import engine as bind

        async def probe() -> ServiceHealth:
            try:
                with bind.connect() as conn:
                    conn.execute(text("SELECT 1"))
            except Exception as e:
                logger.error(f"Database health check failed: {e}")
                return ServiceHealth("database", HealthStatus.UNHEALTHY, f"Database error: {e}")
            return ServiceHealth("database", HealthStatus.HEALTHY, "Database connected")

        return await self._cached("database", probe)

    async def check_debrid(self, client: Optional[RealDebridClient] = None) -> ServiceHealth:
        """Look up the provider account; UNKNOWN when no provider is configured."""
        if client is None:
            return ServiceHealth("realdebrid", HealthStatus.UNKNOWN, "Not configured")

        async def probe() -> ServiceHealth:
            try:
                user = await client.get_user() or {}
            except ProviderAPIError as e:
                logger.warning(f"Real-Debrid health check failed: {e}")
                return ServiceHealth("realdebrid", HealthStatus.UNHEALTHY, str(e))
            return ServiceHealth(
                "realdebrid",
                HealthStatus.HEALTHY,
                "Real-Debrid connected",
                details={"account_type": user.get("type"), "expiration": user.get("expiration")},
            )

        return await self._cached("realdebrid", probe)

    async def check_all(self, client: Optional[RealDebridClient] = None, bind=None) -> Dict[str, Any]:
        """
        Probe every dependency.

        Returns:
            {"status", "timestamp", "services": {name: probe result}}
        """
        database, debrid = await asyncio.gather(self.check_database(bind), self.check_debrid(client))

        if database.status == HealthStatus.UNHEALTHY:
            overall = HealthStatus.UNHEALTHY
        elif debrid.status == HealthStatus.UNHEALTHY:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return {
            "status": overall.value,
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "services": {health.name: health.to_dict() for health in (database, debrid)},
        }

    def clear_cache(self) -> None:
        self._cache.clear()


# Shared across requests so the probe cache survives between polls
_health_service: Optional[HealthCheckService] = None


def get_health_service() -> HealthCheckService:
    """Process-wide HealthCheckService."""
    global _health_service
    if _health_service is None:
        _health_service = HealthCheckService()
    return _health_service

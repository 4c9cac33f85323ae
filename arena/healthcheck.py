"""Backend health check: ask the pitch service which providers have credentials."""

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

AVAILABLE = "available"


@dataclass
class HealthReport:
    reachable: bool
    status: str = "unknown"
    services: dict[str, str] = field(default_factory=dict)   # provider -> "available" | "no-key" | ...
    error: str = ""

    def provider_results(self, providers: list[str]) -> dict[str, tuple[bool, str]]:
        """Map provider name -> (ok, error_message). error_message is "" when ok is True."""
        results: dict[str, tuple[bool, str]] = {}
        for name in providers:
            if not self.reachable:
                results[name] = (False, self.error or "service unreachable")
                continue
            state = self.services.get(name, "missing")
            results[name] = (True, "") if state == AVAILABLE else (False, state)
        return results

    @property
    def healthy(self) -> bool:
        return self.reachable and bool(self.services) and all(s == AVAILABLE for s in self.services.values())


async def run_health_check(client: httpx.AsyncClient, config: AppConfig) -> HealthReport:
    """GET the health endpoint. Never raises; failures come back in the report."""
    url = f"{config.endpoints.base_url}{config.endpoints.health_path}"
    try:
        response = await asyncio.wait_for(
            client.get(url, timeout=config.timeouts.connect_sec),
            timeout=config.timeouts.connect_sec,
        )
        response.raise_for_status()
        data = response.json()
    except Exception as exc:
        logger.debug("Health check against %s failed: %s", url, exc)
        return HealthReport(reachable=False, error=str(exc) or type(exc).__name__)

    if not isinstance(data, dict):
        return HealthReport(reachable=True, status="unknown", error="Unexpected health payload")

    services_raw = data.get("services") or {}
    services = {str(k): str(v) for k, v in services_raw.items()} if isinstance(services_raw, dict) else {}
    return HealthReport(reachable=True, status=str(data.get("status", "unknown")), services=services)

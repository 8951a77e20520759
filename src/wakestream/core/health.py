from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

HEALTH_PATH = "/healthz"
DEFAULT_TIMEOUT = 0.8


@dataclass(frozen=True)
class ProbeResult:
    alive: bool
    metadata: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.alive


DEAD = ProbeResult(alive=False)


def _is_healthy(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    return (
        body.get("ok") is True
        or body.get("status") == "ok"
        or body.get("healthy") is True
    )


class HealthProbe:
    """Boolean liveness oracle for a host's health endpoint.

    Non-2xx, timeouts, transport errors and unexpected bodies all read as
    dead; the reason is logged at DEBUG and never surfaced.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        path: str = HEALTH_PATH,
        scheme: str = "http",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.path = path
        self.scheme = scheme
        self._client = client

    def url(self, ip: str, port: int) -> str:
        return f"{self.scheme}://{ip}:{port}{self.path}"

    async def probe(
        self, ip: str | None, port: int, timeout: float | None = None
    ) -> ProbeResult:
        if not ip:
            return DEAD
        url = self.url(ip, port)
        timeout = self.timeout if timeout is None else timeout
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(url)
        except httpx.TimeoutException:
            logger.debug("No response from %s (timeout)", url)
            return DEAD
        except (httpx.HTTPError, OSError) as exc:
            logger.debug("Probe of %s failed: %s", url, exc)
            return DEAD

        if not response.is_success:
            logger.debug("Probe of %s returned HTTP %d", url, response.status_code)
            return DEAD
        try:
            body = response.json()
        except ValueError:
            logger.debug("Probe of %s returned a non-JSON body", url)
            return DEAD
        if not _is_healthy(body):
            logger.debug("Probe of %s reported unhealthy: %s", url, body)
            return DEAD

        logger.debug("Host alive at %s", url)
        return ProbeResult(alive=True, metadata=body)

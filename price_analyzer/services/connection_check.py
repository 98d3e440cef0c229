# price_analyzer/services/connection_check.py

"""Model API connectivity check."""

import asyncio
import logging
import time
from dataclasses import dataclass

from price_analyzer.config.settings import Settings
from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.services.errors import GatewayError
from price_analyzer.services.model_gateway import ModelGateway

logger = logging.getLogger("price_analyzer.health")

_SLOW_MS = 10_000


@dataclass
class ConnectionResult:
    """Outcome of one connectivity probe."""

    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def probe_model(gateway: ModelGateway, model: str) -> ConnectionResult:
    """Send a tiny request and time it.

    Configuration and authentication errors propagate so the caller
    can show them directly; any other failure is a "down" result.
    """
    envelope = RequestEnvelope(
        system_prompt="You are a connectivity probe.",
        user_prompt='Connection test. Reply with just "OK".',
        model=model,
        temperature=0.0,
        max_tokens=5,
    )
    start = time.monotonic()
    try:
        reply = gateway.send(envelope)
    except GatewayError as exc:
        if exc.fatal:
            raise
        elapsed_ms = (time.monotonic() - start) * 1000
        return ConnectionResult(
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:120],
        )
    elapsed_ms = (time.monotonic() - start) * 1000

    if elapsed_ms > _SLOW_MS:
        return ConnectionResult(
            status="slow",
            latency_ms=elapsed_ms,
            message="High latency",
        )
    return ConnectionResult(
        status="ok",
        latency_ms=elapsed_ms,
        message=reply.strip()[:40],
    )


async def check_connection(
    gateway: ModelGateway, model: str | None = None,
) -> ConnectionResult:
    """Run :func:`probe_model` off the event loop and log the result."""
    result = await asyncio.to_thread(
        probe_model, gateway, model or Settings.DEFAULT_MODEL
    )
    logger.info(
        "Connection check: %s (%.0fms) %s",
        result.status,
        result.latency_ms,
        result.message,
    )
    return result

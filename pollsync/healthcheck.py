"""Collaborator health checks: ping the sheet and the chat transport before serving."""

import asyncio
import logging

from pollsync.adapters.base import ChatTransport, TabularStore

logger = logging.getLogger(__name__)

_TIMEOUT_SEC = 15.0


async def _check_one(name: str, target: TabularStore | ChatTransport) -> tuple[str, bool, str]:
    """Ping a single collaborator. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(target.ping(), timeout=_TIMEOUT_SEC)
        return name, True, ""
    except Exception as exc:
        logger.debug("Health check %s failed: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__


async def run_health_checks(
    targets: dict[str, TabularStore | ChatTransport],
) -> dict[str, tuple[bool, str]]:
    """Ping all collaborators in parallel.

    Returns:
        Dict mapping collaborator name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, t) for n, t in targets.items()))
    return {name: (ok, err) for name, ok, err in results}

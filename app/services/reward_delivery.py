from __future__ import annotations

from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


def build_reward_headers(*, token: str, dedupe_key: str) -> dict[str, str]:
    headers = {"Idempotency-Key": dedupe_key}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


async def post_reward_event(
    *,
    client: httpx.AsyncClient,
    url: str,
    token: str,
    event_type: str,
    dedupe_key: str,
    payload: dict[str, Any],
) -> bool:
    """Sends one milestone event to the reward subsystem; False on any transport or HTTP error."""
    try:
        response = await client.post(
            url,
            json={"event_type": event_type, "dedupe_key": dedupe_key, "payload": payload},
            headers=build_reward_headers(token=token, dedupe_key=dedupe_key),
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning(
            "streak_reward_delivery_failed",
            event_type=event_type,
            dedupe_key=dedupe_key,
            error_type=type(exc).__name__,
        )
        return False
    return True

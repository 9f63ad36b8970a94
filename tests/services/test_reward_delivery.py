from __future__ import annotations

import json

import httpx
import pytest

from app.services.reward_delivery import build_reward_headers, post_reward_event


def test_build_reward_headers_adds_bearer_only_when_configured() -> None:
    assert build_reward_headers(token="", dedupe_key="k1") == {"Idempotency-Key": "k1"}
    assert build_reward_headers(token="t0k", dedupe_key="k1") == {
        "Idempotency-Key": "k1",
        "Authorization": "Bearer t0k",
    }


@pytest.mark.asyncio
async def test_post_reward_event_sends_envelope() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        delivered = await post_reward_event(
            client=client,
            url="https://rewards.example/hooks/streak",
            token="t0k",
            event_type="streak_milestone_reached",
            dedupe_key="streak_milestone:42:7:2024-01-07",
            payload={"user_id": 42, "milestone": 7},
        )

    assert delivered is True
    assert seen[0].headers["Idempotency-Key"] == "streak_milestone:42:7:2024-01-07"
    assert seen[0].headers["Authorization"] == "Bearer t0k"
    assert json.loads(seen[0].content) == {
        "event_type": "streak_milestone_reached",
        "dedupe_key": "streak_milestone:42:7:2024-01-07",
        "payload": {"user_id": 42, "milestone": 7},
    }


@pytest.mark.asyncio
async def test_post_reward_event_returns_false_on_error_status_and_transport_error() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    for handler in (server_error, unreachable):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            delivered = await post_reward_event(
                client=client,
                url="https://rewards.example/hooks/streak",
                token="",
                event_type="streak_milestone_reached",
                dedupe_key="k",
                payload={},
            )
        assert delivered is False

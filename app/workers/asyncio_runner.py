from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")


async def _run_isolated(awaitable: Awaitable[T], job_name: str | None) -> T:
    # Each asyncio.run gets a new loop; pooled asyncpg connections cannot cross loops.
    await dispose_engine()
    with structlog.contextvars.bound_contextvars(job=job_name):
        try:
            return await awaitable
        finally:
            await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str | None = None) -> T:
    return asyncio.run(_run_isolated(awaitable, job_name))

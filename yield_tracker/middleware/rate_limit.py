from __future__ import annotations

import time
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

WINDOW_SECONDS = 60


async def rate_limiter(request: Request, call_next: Callable, redis: Redis, max_requests: int):
    """Fixed-window per-client limiter backed by Redis counters."""
    if request.url.path == "/health":
        return await call_next(request)
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate:{client_ip}:{int(time.time() // WINDOW_SECONDS)}"

    current = await redis.incr(key)
    if current == 1:
        await redis.expire(key, WINDOW_SECONDS)
    if current > max_requests:
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": "Rate limit exceeded, try again later"},
        )
    return await call_next(request)

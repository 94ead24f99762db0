"""Per-caller sliding-window limits for the write endpoints."""

import logging
import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after_seconds: int
    remaining: int = 0


class InMemoryRateLimiter:
    """Timestamps of accepted calls per (route, caller), pruned on every check."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._events: dict[tuple[str, str], deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, route_key: str, caller: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        with self._lock:
            window = self._events[(route_key, caller)]
            while window and window[0] <= now - window_seconds:
                window.popleft()
            if len(window) >= limit:
                wait = math.ceil(window[0] + window_seconds - now)
                return RateDecision(allowed=False, retry_after_seconds=max(1, wait))
            window.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0, remaining=limit - len(window))

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


limiter = InMemoryRateLimiter()


def caller_identity(request: Request) -> str:
    user_id = request.headers.get("x-user-id", "").strip()
    if user_id:
        return f"user:{user_id}"
    forwarded = request.headers.get("x-forwarded-for", "").strip()
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return "unknown"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(request: Request) -> None:
        decision = limiter.check(route_key, caller_identity(request), limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            logger.warning("[RATE] %s limit reached, retry in %ss", route_key, decision.retry_after_seconds)
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return Depends(_dep)

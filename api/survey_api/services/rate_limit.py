import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Request


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after_seconds: int = 0


class InMemoryRateLimiter:
    """Sliding-window request log per key, local to this process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        with self._lock:
            hits = self._windows.setdefault(key, deque())
            expired_before = now - window_seconds
            while hits and hits[0] <= expired_before:
                hits.popleft()
            if len(hits) < limit:
                hits.append(now)
                return RateDecision(allowed=True)
            oldest = hits[0]
        return RateDecision(allowed=False, retry_after_seconds=max(1, int(oldest + window_seconds - now)))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


limiter = InMemoryRateLimiter()


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    # respondents are keyed by email when no proxy header is present
    email = request.headers.get("x-respondent-email", "").strip().lower()
    if email:
        return f"respondent:{email}"
    return request.client.host if request.client and request.client.host else "unknown"


def rate_limit_key(route_key: str, request: Request) -> str:
    survey_id = request.path_params.get("survey_id", "")
    return f"{route_key}:{survey_id}:{client_identifier(request)}"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    """Budget requests per client per survey on the wrapped route."""

    def _enforce(request: Request) -> None:
        decision = limiter.check(rate_limit_key(route_key, request), limit=limit, window_seconds=window_seconds)
        if decision.allowed:
            return
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests for this survey. Retry in {decision.retry_after_seconds}s",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )

    return Depends(_enforce)

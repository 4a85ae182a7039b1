"""
Process-local fixed-window rate limiting.

This is first-line admission control against abuse, not a distributed or
SLA-grade limit: counters live in this process only, reset on restart, and
are not shared between server instances.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
import logging
import threading
import time

from fastapi import Depends, HTTPException, Request, Response, status

from accesscore.auth.claims import TokenClaims, get_token_claims
from accesscore.metrics import rate_limited_total

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateLimitPreset:
    window_ms: int
    max_requests: int


RATE_LIMITS: Dict[str, RateLimitPreset] = {
    "auth": RateLimitPreset(window_ms=15 * 60 * 1000, max_requests=5),
    "api": RateLimitPreset(window_ms=60 * 1000, max_requests=60),
    "public": RateLimitPreset(window_ms=60 * 1000, max_requests=100),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    # Seconds since the epoch at which the current window ends
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(1, int(self.reset_at - time.time() + 0.999))


@dataclass
class _Entry:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window counter per identifier (IP address, token subject, ...).

    All reads and writes of an entry happen under one lock, so concurrent
    requests for the same identifier never lose an increment.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        cleanup_threshold: int = DEFAULT_CLEANUP_THRESHOLD,
    ):
        self._clock = clock
        self._cleanup_threshold = cleanup_threshold
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str, window_ms: int, max_requests: int) -> RateLimitResult:
        """
        Count one request for ``identifier`` and decide whether to allow it.

        - No entry, or the window has elapsed: start a new window at count 1.
        - Inside the window and under the limit: increment and allow.
        - At the limit: deny without incrementing.
        """
        with self._lock:
            now = self._clock()

            if len(self._entries) > self._cleanup_threshold:
                self._purge_expired_locked(now)

            entry = self._entries.get(identifier)

            if entry is None or entry.reset_at <= now:
                entry = _Entry(count=1, reset_at=now + window_ms / 1000.0)
                self._entries[identifier] = entry
                return RateLimitResult(True, max_requests, max_requests - 1, entry.reset_at)

            if entry.count >= max_requests:
                return RateLimitResult(False, max_requests, 0, entry.reset_at)

            entry.count += 1
            return RateLimitResult(True, max_requests, max_requests - entry.count, entry.reset_at)

    def reset(self, identifier: str) -> None:
        """Forget the counter for one identifier."""
        with self._lock:
            self._entries.pop(identifier, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop entries whose window has elapsed. Returns how many were dropped."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired rate limit entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Standard rate limit response headers."""
    reset = datetime.fromtimestamp(result.reset_at, tz=timezone.utc)
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": reset.isoformat().replace("+00:00", "Z"),
    }


# Shared by every route in this process
limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return limiter


def _identifier(request: Request, claims: Optional[TokenClaims]) -> str:
    if claims is not None:
        return f"sub:{claims.sub}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit(preset: str, scope: Optional[str] = None) -> Callable:
    """
    FastAPI dependency that throttles a route with a named preset.

    Runs on the token claims alone, before the user is resolved, so a
    throttled request never reaches the database. Callers are keyed by token
    subject when authenticated, else by client IP. Allowed responses carry
    the X-RateLimit-* headers.

    Usage:
        @router.post("/me/identities", dependencies=[Depends(rate_limit("auth"))])

    Raises:
        HTTPException 429 with X-RateLimit-* and Retry-After headers.
    """
    config = RATE_LIMITS[preset]
    bucket = scope or preset

    def check_rate_limit(
        request: Request,
        response: Response,
        claims: Optional[TokenClaims] = Depends(get_token_claims),
        rate_limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        key = f"{bucket}:{_identifier(request, claims)}"
        result = rate_limiter.check(key, config.window_ms, config.max_requests)

        if not result.allowed:
            rate_limited_total.labels(preset=preset).inc()
            logger.warning(f"[{request.headers.get('x-request-id', '-')}] Rate limit exceeded for {key}")
            headers = rate_limit_headers(result)
            headers["Retry-After"] = str(result.retry_after)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers=headers,
            )

        response.headers.update(rate_limit_headers(result))
        return result

    return check_rate_limit

import time
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from rastuci.utils.logs import get_logger
from rastuci.utils.responses import ApiError

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    key: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    ok: bool
    remaining: int
    reset_at: float


RATE_LIMITS = {
    "api": RateLimitConfig("api", 100, 15 * 60),
    "auth": RateLimitConfig("auth", 5, 15 * 60),
    "order": RateLimitConfig("order", 5, 60),
    "tracking": RateLimitConfig("tracking", 30, 60),
    "webhook": RateLimitConfig("webhook", 200, 15 * 60),
}


class RateLimiter:
    """Fixed-window counters kept in process memory.

    ``check`` counts every call (the ``limit``-th call in a window is still
    allowed). ``hit``/``is_blocked``/``reset`` count only what the caller
    reports, which is what login throttling needs: failed attempts block,
    a successful login clears the counter.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[str, dict] = {}  # {"auth:1.2.3.4": {"count": int, "reset_at": ts}}

    # callers of the underscore helpers hold self._lock
    def _current(self, key: str, now: float) -> Optional[dict]:
        entry = self._store.get(key)
        if entry and entry["reset_at"] <= now:
            del self._store[key]
            return None
        return entry

    def _cleanup(self, now: float) -> None:
        for key in [k for k, v in self._store.items() if v["reset_at"] <= now]:
            del self._store[key]

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            entry = self._store.get(key)
            if entry is None:
                entry = {"count": 1, "reset_at": now + window_seconds}
                self._store[key] = entry
                return RateLimitResult(True, limit - 1, entry["reset_at"])
            if entry["count"] >= limit:
                return RateLimitResult(False, 0, entry["reset_at"])
            entry["count"] += 1
            return RateLimitResult(True, limit - entry["count"], entry["reset_at"])

    def hit(self, key: str, window_seconds: int) -> int:
        with self._lock:
            now = self._clock()
            entry = self._current(key, now)
            if entry is None:
                self._store[key] = {"count": 1, "reset_at": now + window_seconds}
                return 1
            entry["count"] += 1
            return entry["count"]

    def is_blocked(self, key: str, limit: int) -> bool:
        with self._lock:
            entry = self._current(key, self._clock())
            return bool(entry) and entry["count"] >= limit

    def reset(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


limiter = RateLimiter()


def get_client_id(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def check_rate_limit(request: Request, preset: str) -> RateLimitResult:
    cfg = RATE_LIMITS[preset]
    return limiter.check("{0}:{1}".format(cfg.key, get_client_id(request)), cfg.limit, cfg.window_seconds)


def enforce_rate_limit(request: Request, preset: str) -> None:
    result = check_rate_limit(request, preset)
    if not result.ok:
        logger.warning("Rate limit exceeded", extra={"preset": preset, "client": get_client_id(request)})
        raise ApiError(429, "Demasiadas solicitudes", "RATE_LIMITED")


def rate_limited(preset: str):
    """Route dependency: ``dependencies=[Depends(rate_limited("api"))]``."""
    def dependency(request: Request) -> None:
        enforce_rate_limit(request, preset)
    return dependency

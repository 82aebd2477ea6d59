"""Per-client request throttling for the scan endpoints.

Scans are the expensive path (classifier call, storage upload, DB write), so
they are limited per client IP with an in-process sliding window.
"""

import ipaddress
import math
import time
from collections import deque
from threading import Lock
from typing import NamedTuple, Optional

from fastapi import Request

from cattlescan.core.config import get_settings

SCAN_WINDOW_SECONDS = 60

_MAX_BUCKETS = 50_000
_PRUNE_INTERVAL_SECONDS = 60


class RateDecision(NamedTuple):
    allowed: bool
    count: int
    retry_after: int = 0


class SlidingWindowRateLimiter:
    def __init__(
        self,
        *,
        max_buckets: int = _MAX_BUCKETS,
        prune_interval_seconds: int = _PRUNE_INTERVAL_SECONDS,
    ) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._max_buckets = max_buckets
        self._prune_every = max(1, int(prune_interval_seconds))
        self._pruned_at = 0.0

    def allow(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        if limit <= 0 or window_seconds <= 0:
            return RateDecision(True, 0)
        now = time.monotonic()
        cutoff = now - window_seconds
        with self._lock:
            if len(self._hits) > self._max_buckets or now - self._pruned_at >= self._prune_every:
                self._drop_idle(cutoff)
                self._pruned_at = now

            hits = self._hits.setdefault(key, deque())
            _expire(hits, cutoff)
            if len(hits) >= limit:
                # The oldest hit leaves the window first.
                wait = max(1, math.ceil(hits[0] + window_seconds - now))
                return RateDecision(False, len(hits), wait)
            hits.append(now)
            return RateDecision(True, len(hits))

    def _drop_idle(self, cutoff: float) -> None:
        """Forget keys with no hits inside the window (called under lock)."""
        for key in [k for k, hits in self._hits.items() if not _expire(hits, cutoff)]:
            del self._hits[key]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._pruned_at = 0.0


def _expire(hits: deque, cutoff: float) -> int:
    while hits and hits[0] <= cutoff:
        hits.popleft()
    return len(hits)


rate_limiter = SlidingWindowRateLimiter()


def _ip_in_allowlist(ip: str, allowlist: list[str]) -> bool:
    if not ip:
        return False
    if ip in allowlist:
        return True
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if ip_obj in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def get_client_ip(request: Request, trusted_proxies: Optional[list[str]] = None) -> Optional[str]:
    """Client IP, honouring ``X-Real-IP`` / ``X-Forwarded-For`` only behind a trusted proxy.

    The proxy list comes from ``TRUSTED_PROXIES`` (addresses or CIDRs).
    """
    peer_ip = request.client.host if request.client else None
    trusted = trusted_proxies if trusted_proxies is not None else get_settings().trusted_proxies
    if not (peer_ip and trusted and _ip_in_allowlist(peer_ip, trusted)):
        return peer_ip

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    # Rightmost entry was appended by our own proxy.
    hops = [p.strip() for p in (request.headers.get("x-forwarded-for") or "").split(",") if p.strip()]
    return hops[-1] if hops else peer_ip


def check_scan_rate(request: Request) -> RateDecision:
    settings = get_settings()
    if not settings.rate_limit_scan_enabled:
        return RateDecision(True, 0)
    ip = get_client_ip(request) or "unknown"
    return rate_limiter.allow(f"scan:ip:{ip}", settings.rate_limit_scan_per_min, SCAN_WINDOW_SECONDS)

"""
Rate limiter for the public redirect path: in-memory sliding window.

Limits:
  - Per IP: configurable (default 60/min). /s/ and /smart/ count under
    separate keys, a mobile click passes through both
  - Per IP+slug combo: configurable (default 20/min)

In-memory means per-process. Good enough to blunt a single scraper.
"""

import time
from fastapi import HTTPException, Request
from app.config import get_settings

import structlog

logger = structlog.get_logger()

_memory_store: dict[str, list[float]] = {}

PRIVATE_PREFIXES = (
    "10.", "172.16.", "172.17.", "172.18.", "172.19.", "172.20.", "172.21.",
    "172.22.", "172.23.", "172.24.", "172.25.", "172.26.", "172.27.", "172.28.",
    "172.29.", "172.30.", "172.31.", "192.168.", "127.", "::1",
)


def _sliding_window_check(key: str, limit: int, window_seconds: int = 60) -> bool:
    now = time.time()
    cutoff = now - window_seconds

    hits = [t for t in _memory_store.get(key, []) if t > cutoff]
    if len(hits) >= limit:
        _memory_store[key] = hits
        return False

    hits.append(now)
    _memory_store[key] = hits
    return True


def check_rate_limit(key: str, limit: int, window: int = 60) -> None:
    if not _sliding_window_check(key, limit, window):
        logger.info("rate_limited", key=key.split(":", 1)[0], limit=limit)
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Slow down.",
            headers={
                "Retry-After": str(window),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )


def get_real_ip(request: Request) -> str:
    """Client IP: first public hop in x-forwarded-for, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ips = [ip.strip() for ip in forwarded.split(",")]
        for ip in ips:
            if not ip.startswith(PRIVATE_PREFIXES):
                return ip
        return ips[0]
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def rate_limit_ip(request: Request, scope: str = "ip") -> None:
    settings = get_settings()
    check_rate_limit(f"{scope}:{get_real_ip(request)}", settings.rate_limit_per_ip_per_minute)


def rate_limit_slug(request: Request, slug: str) -> None:
    settings = get_settings()
    check_rate_limit(f"slug:{get_real_ip(request)}:{slug}", settings.rate_limit_per_slug_per_minute)


def reset_rate_limits() -> None:
    _memory_store.clear()

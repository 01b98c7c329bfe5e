from __future__ import annotations

import os
import threading
from typing import Any, Callable

from cachetools import TTLCache


# Dashboard snapshot namespaces. Attendance and evaluation writes drop all of them.
DASHBOARD_PREFIXES = ("DASH_ADMIN:", "DASH_EMP:", "LEADERBOARD:", "EVAL_SUMMARY:")


def make_cache_key(namespace: str, *scope: Any) -> str:
    """DASH_EMP + (user, 2024) -> "DASH_EMP:<user>:2024". Blank scope parts are skipped."""
    ns = str(namespace or "").strip().upper()
    parts = [ns] + [str(s).strip() for s in scope if s is not None and str(s).strip()]
    return ":".join(parts)


def _bounded_env_int(name: str, default: int, low: int, high: int) -> int:
    try:
        value = int(str(os.getenv(name, "") or "").strip() or default)
    except ValueError:
        value = default
    return max(low, min(high, value))


class _SnapshotCache:
    """Per-process TTL store for dashboard snapshots."""

    def __init__(self):
        self._snapshots = TTLCache(
            maxsize=_bounded_env_int("CACHE_MAX_ITEMS", 5000, 100, 500_000),
            ttl=_bounded_env_int("CACHE_TTL_SECONDS", 60, 1, 3600),
        )
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._dropped = 0

    def get_or_build(self, key: str, build: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._snapshots:
                self._hits += 1
                return self._snapshots[key]
            self._misses += 1

        # Built outside the lock; when two requests race, the first stored snapshot wins.
        snapshot = build()
        with self._lock:
            return self._snapshots.setdefault(key, snapshot)

    def drop_prefixes(self, prefixes) -> int:
        wanted = tuple(p for p in prefixes if p)
        if not wanted:
            return 0
        with self._lock:
            stale = [k for k in list(self._snapshots) if str(k).startswith(wanted)]
            for k in stale:
                self._snapshots.pop(k, None)
            self._dropped += len(stale)
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._snapshots.clear()
            self._hits = self._misses = self._dropped = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._snapshots),
                "maxsize": self._snapshots.maxsize,
                "ttl": self._snapshots.ttl,
                "hits": self._hits,
                "misses": self._misses,
                "invalidated": self._dropped,
                "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
            }


_snapshots = _SnapshotCache()


def cache_get_or_set(key: str, factory: Callable[[], Any]) -> Any:
    return _snapshots.get_or_build(key, factory)


def invalidate_dashboards() -> int:
    return _snapshots.drop_prefixes(DASHBOARD_PREFIXES)


def cache_clear() -> None:
    _snapshots.reset()


def cache_stats() -> dict[str, Any]:
    return _snapshots.stats()

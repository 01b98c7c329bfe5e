from __future__ import annotations

import logging

import redis
from flask import Blueprint, current_app, jsonify

from cache_layer import cache_stats
from db import get_pool_stats, ping_db
from utils import iso_utc_now

core_bp = Blueprint("core", __name__)


def _ping_redis(redis_url: str) -> bool:
    if not redis_url:
        return True  # not configured; jobs are optional for readiness
    try:
        return bool(redis.from_url(redis_url, socket_connect_timeout=2).ping())
    except redis.RedisError:
        logging.getLogger("api").warning("redis ping failed")
        return False


@core_bp.get("/health")
def health():
    """Process is up; no dependency checks."""
    cfg = current_app.config["CFG"]
    return jsonify({"ok": True, "status": "ok", "time": iso_utc_now(), "version": cfg.APP_VERSION})


@core_bp.get("/ready")
def ready():
    cfg = current_app.config["CFG"]
    db_ok = ping_db()
    redis_ok = _ping_redis(cfg.REDIS_URL)
    all_ok = db_ok and redis_ok

    return (
        jsonify(
            {
                "ok": all_ok,
                "status": "ok" if all_ok else "degraded",
                "time": iso_utc_now(),
                "version": cfg.APP_VERSION,
                "checks": {"db": "ok" if db_ok else "error", "redis": "ok" if redis_ok else "error"},
                "pool": get_pool_stats(),
                "cache": cache_stats(),
            }
        ),
        200 if all_ok else 503,
    )


@core_bp.get("/version")
def version():
    cfg = current_app.config["CFG"]
    return jsonify({"version": cfg.APP_VERSION, "env": cfg.ENV, "time": iso_utc_now()})

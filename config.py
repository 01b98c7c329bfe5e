from __future__ import annotations

import os


def _env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(str(os.getenv(name, "") or "").strip() or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    raw = _env_str(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def _env_limit(name: str, default: str) -> tuple[int, int]:
    # "<calls>/<seconds>", e.g. "120/60"
    raw = _env_str(name, default)
    try:
        calls, seconds = raw.split("/", 1)
        return max(0, int(calls)), max(1, int(seconds))
    except Exception:
        calls, seconds = default.split("/", 1)
        return int(calls), int(seconds)


class Config:
    def __init__(self):
        self.ENV = _env_str("APP_ENV", "development").lower()
        self.IS_PRODUCTION = self.ENV in {"prod", "production"}
        self.APP_VERSION = _env_str("APP_VERSION", "0.1.0")

        self.HOST = _env_str("HOST", "0.0.0.0")
        self.PORT = _env_int("PORT", 5002)
        self.LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

        self.DATABASE_URL = _env_str("DATABASE_URL", "sqlite:///./mylearning.db")
        self.ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", "http://localhost:5173")

        self.SESSION_TTL_MINUTES = _env_int("SESSION_TTL_MINUTES", 12 * 60)
        self.RATE_LIMIT_LOGIN = _env_limit("RATE_LIMIT_LOGIN", "20/60")
        self.RATE_LIMIT_GLOBAL = _env_limit("RATE_LIMIT_GLOBAL", "600/60")
        self.RATE_LIMIT_DEFAULT = _env_limit("RATE_LIMIT_DEFAULT", "120/60")

        # Training compliance
        self.TRAINING_TARGET_HOURS = _env_float("TRAINING_TARGET_HOURS", 40.0)
        self.UPCOMING_WINDOW_DAYS = _env_int("UPCOMING_WINDOW_DAYS", 7)
        self.UPCOMING_LIMIT = _env_int("UPCOMING_LIMIT", 5)
        self.OVERDUE_GRACE_DAYS = _env_int("OVERDUE_GRACE_DAYS", 3)
        self.OVERDUE_CANDIDATE_LIMIT = _env_int("OVERDUE_CANDIDATE_LIMIT", 10)
        self.LEADERBOARD_SIZE = _env_int("LEADERBOARD_SIZE", 10)

        self.DASHBOARD_CACHE_ENABLED = _env_bool("DASHBOARD_CACHE_ENABLED", True)

        self.ENABLE_COMPRESSION = _env_bool("ENABLE_COMPRESSION", True)
        self.COMPRESSION_MIN_SIZE = _env_int("COMPRESSION_MIN_SIZE", 500)
        self.COMPRESSION_LEVEL = _env_int("COMPRESSION_LEVEL", 6)

        self.REDIS_URL = _env_str("REDIS_URL", "")
        # Shared secret for schedulers hitting /api/v1/jobs without a user session.
        self.INTERNAL_CRON_TOKEN = _env_str("INTERNAL_CRON_TOKEN", "")

    def validate(self) -> None:
        if not self.DATABASE_URL:
            raise RuntimeError("Missing DATABASE_URL")
        if self.TRAINING_TARGET_HOURS < 0:
            raise RuntimeError("TRAINING_TARGET_HOURS must be >= 0")
        for name in ("UPCOMING_WINDOW_DAYS", "UPCOMING_LIMIT", "OVERDUE_GRACE_DAYS", "OVERDUE_CANDIDATE_LIMIT", "LEADERBOARD_SIZE"):
            if int(getattr(self, name)) < 0:
                raise RuntimeError(f"{name} must be >= 0")
        if self.SESSION_TTL_MINUTES <= 0:
            raise RuntimeError("SESSION_TTL_MINUTES must be > 0")

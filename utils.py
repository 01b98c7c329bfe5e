from __future__ import annotations

import hashlib
import json
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dt_parser


class ApiError(Exception):
    def __init__(self, code: str, message: str, *, http_status: int = 400):
        super().__init__(message)
        self.code = str(code or "INTERNAL")
        self.message = str(message or "")
        self.http_status = int(http_status or 400)


@dataclass(frozen=True)
class AuthContext:
    valid: bool
    userId: str
    email: str
    role: str
    expiresAt: str
    name: str = ""
    sessionId: str = ""


def ok(data: Any) -> tuple[dict[str, Any], int]:
    return {"ok": True, "data": data}, 200


def err(code: str, message: str, *, http_status: int = 400) -> tuple[dict[str, Any], int]:
    return {"ok": False, "error": {"code": str(code or "INTERNAL"), "message": str(message or "")}}, http_status


def new_uuid() -> str:
    return str(uuid.uuid4())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(str(value or "").encode("utf-8")).hexdigest()


def now_monotonic() -> float:
    return time.monotonic()


def to_iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_utc_now() -> str:
    return to_iso_utc(datetime.now(timezone.utc))


def parse_datetime_maybe(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-ish timestamp (or date) into an aware UTC datetime.

    Naive values are taken as UTC. Returns None for blanks and garbage.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value or "").strip()
        if not s:
            return None
        try:
            dt = dt_parser.isoparse(s)
        except (ValueError, OverflowError):
            try:
                dt = dt_parser.parse(s)
            except (ValueError, OverflowError):
                return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_role(role: Any) -> str:
    return str(role or "").strip().upper()


def normalize_email(email: Any) -> str:
    return str(email or "").strip().lower()


def parse_json_body(raw: str) -> dict[str, Any]:
    s = str(raw or "").strip()
    if not s:
        raise ApiError("BAD_REQUEST", "Empty body")
    try:
        body = json.loads(s)
    except Exception:
        raise ApiError("BAD_REQUEST", "Invalid JSON body")
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "Body must be a JSON object")
    return body


_REDACT_KEYS = {"password", "currentpassword", "newpassword", "token", "sessiontoken"}


def redact_for_audit(value: Any) -> Any:
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if str(k).lower() in _REDACT_KEYS:
                out[k] = "***"
            else:
                out[k] = redact_for_audit(v)
        return out
    if isinstance(value, list):
        return [redact_for_audit(v) for v in value]
    return value


def parse_year(value: Any, *, default: int) -> int:
    s = str(value if value is not None else "").strip()
    if not s:
        return int(default)
    try:
        year = int(s)
    except ValueError:
        raise ApiError("BAD_REQUEST", "Invalid year")
    if year < 1970 or year > 9999:
        raise ApiError("BAD_REQUEST", "Invalid year")
    return year


class SimpleRateLimiter:
    """Fixed-window, in-process limiter. `limit` is (max_calls, window_seconds)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    def check(self, key: str, limit: tuple[int, int]) -> None:
        max_calls, window_s = limit
        if max_calls <= 0:
            return
        now = time.monotonic()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= window_s:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
        if count > max_calls:
            raise ApiError("RATE_LIMITED", "Too many requests", http_status=429)

from __future__ import annotations

import gzip
import logging

from flask import Flask, request


_log = logging.getLogger("api")


def _should_compress(response) -> bool:
    if "gzip" not in request.headers.get("Accept-Encoding", "").lower():
        return False
    if response.status_code != 200 or response.direct_passthrough or "Content-Encoding" in response.headers:
        return False
    return "application/json" in response.headers.get("Content-Type", "").lower()


def init_compression(app: Flask, cfg) -> None:
    """
    Gzip JSON responses of at least COMPRESSION_MIN_SIZE bytes.

    Dashboard snapshots (12-month trends, leaderboards, training history) are the
    large payloads here. Disabled with ENABLE_COMPRESSION=0.
    """

    if not cfg.ENABLE_COMPRESSION:
        return

    min_size = int(cfg.COMPRESSION_MIN_SIZE)
    level = max(1, min(9, int(cfg.COMPRESSION_LEVEL)))

    @app.after_request
    def _compress(response):
        if not _should_compress(response):
            return response

        data = response.get_data()
        if len(data) < min_size:
            return response
        try:
            packed = gzip.compress(data, compresslevel=level)
        except (OSError, ValueError):
            _log.warning("gzip failed path=%s", request.path)
            return response

        if len(packed) < len(data):
            response.set_data(packed)
            response.headers["Content-Encoding"] = "gzip"
            response.headers["Content-Length"] = str(len(packed))
            response.vary.add("Accept-Encoding")
        return response

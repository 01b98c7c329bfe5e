from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, request
from flask_cors import CORS

from app.cli import register_cli
from app.middlewares.compression import init_compression
from app.routes.api import api_bp
from app.routes.core import core_bp
from app.routes.jobs import jobs_bp
from config import Config
from db import init_engine
from utils import SimpleRateLimiter, err, now_monotonic


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(cfg: Optional[Config] = None) -> Flask:
    load_dotenv()
    cfg = cfg or Config()
    cfg.validate()
    _configure_logging(cfg.LOG_LEVEL)

    engine = init_engine(cfg.DATABASE_URL)

    from models import Base  # imported after engine init

    Base.metadata.create_all(bind=engine)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.config["JSON_SORT_KEYS"] = False
    app.extensions["rate_limiter"] = SimpleRateLimiter()

    CORS(
        app,
        origins=cfg.ALLOWED_ORIGINS,
        supports_credentials=False,
        allow_headers=["Content-Type", "Authorization", "X-Session-Token", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.before_request
    def _before():
        g.request_id = os.urandom(8).hex()
        g.start_ts = now_monotonic()

    @app.after_request
    def _after(resp):
        resp.headers["X-Request-ID"] = str(getattr(g, "request_id", "") or "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("Cache-Control", "no-store")
        return resp

    init_compression(app, cfg)
    register_cli(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(jobs_bp, url_prefix="/api/v1/jobs")

    @app.errorhandler(404)
    def not_found(_e):
        return err("NOT_FOUND", f"Unknown endpoint: {request.path}. Use POST /api for actions.", http_status=404)

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return err("BAD_REQUEST", "Method not allowed. Use POST /api for actions.", http_status=405)

    logging.getLogger("api").info("app started env=%s version=%s", cfg.ENV, cfg.APP_VERSION)
    return app

"""
Celery app for background jobs.

Usage:
    celery -A app.tasks.celery_app worker --loglevel=INFO
"""
from __future__ import annotations

import os

from celery import Celery


def make_celery() -> Celery:
    """
    Celery with a Redis broker.

    Environment variables:
        REDIS_URL: broker URL (default: redis://localhost:6379/0)
        CELERY_RESULT_BACKEND: optional separate result backend
        CELERY_TASK_ALWAYS_EAGER: run tasks inline (tests, single-box setups)
    """
    redis_url = os.getenv("REDIS_URL", "") or "redis://localhost:6379/0"
    result_backend = os.getenv("CELERY_RESULT_BACKEND", "") or redis_url
    eager = str(os.getenv("CELERY_TASK_ALWAYS_EAGER", "") or "").strip().lower() in {"1", "true", "yes", "y", "on"}

    app = Celery(
        "mylearning",
        broker=redis_url,
        backend=result_backend,
        include=["app.tasks.reminders"],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        result_expires=86400,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=int(os.getenv("CELERY_CONCURRENCY", "2")),
        task_default_retry_delay=60,
        task_always_eager=eager,
        task_eager_propagates=eager,
    )
    return app


celery_app = make_celery()

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

engine: Optional[Engine] = None
# Bound by init_engine(); importable before that.
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, future=True)


def init_engine(database_url: str) -> Engine:
    global engine

    if engine is not None:
        engine.dispose()

    url = str(database_url or "").strip()
    kwargs: dict[str, Any] = {"future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=1800)

    engine = create_engine(url, **kwargs)
    SessionLocal.configure(bind=engine)
    return engine


def ping_db() -> bool:
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def get_pool_stats() -> dict[str, Any]:
    if engine is None:
        return {"initialized": False}
    pool = engine.pool
    out: dict[str, Any] = {"initialized": True, "class": type(pool).__name__}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        fn = getattr(pool, name, None)
        if callable(fn):
            try:
                out[name] = fn()
            except Exception:
                pass
    return out

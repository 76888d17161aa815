# clinic_billing/db/session.py
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from clinic_billing.core.config import settings


def _engine_kwargs(db_uri: str) -> Dict[str, Any]:
    if db_uri.startswith("sqlite"):
        # sqlite connections are shared across the threadpool FastAPI runs sync routes in
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": 10,
        "max_overflow": 20,
    }


def make_engine(db_uri: str) -> Engine:
    return create_engine(
        db_uri,
        echo=settings.DB_ECHO,
        future=True,
        **_engine_kwargs(db_uri),
    )


engine: Engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

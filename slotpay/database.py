# slotpay/database.py
from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import Settings

Base = declarative_base()


def make_engine(settings: Settings) -> Engine:
    """
    Crea el engine según el tipo de base. No hay engine global: main.create_app
    lo construye una vez y lo inyecta.
    """
    url = settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL no está configurada (revisa tu .env).")

    if url.startswith("sqlite"):
        # SQLite local (archivo); timeout alto para que los writers concurrentes esperen el lock
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
            future=True,
        )

    # Postgres u otros (producción)
    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        future=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        future=True,
    )


def init_db(engine: Engine) -> None:
    """
    Crea las tablas si no existen. Importa modelos antes para que SQLAlchemy
    conozca todos los metadatos.
    """
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)

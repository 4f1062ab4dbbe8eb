"""
Configuración de la base de datos
SQLAlchemy setup para SQLite
"""

import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from facturador.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # SQLite connections are shared between the event loop and the threadpool
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None) -> None:
    """Crea las tablas de los modelos registrados."""
    # Import models so they register on Base.metadata
    from facturador.models import certificate, company, invoice  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.debug("Database tables ensured")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency para FastAPI
    Crea una sesión de BD para cada request y la cierra al terminar
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

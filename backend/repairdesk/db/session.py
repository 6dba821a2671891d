from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from repairdesk.core.config import settings

connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db() -> None:
    from repairdesk.db.base import Base
    import repairdesk.models  # noqa: F401

    Base.metadata.create_all(bind=engine)

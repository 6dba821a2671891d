from collections.abc import Iterator

from sqlalchemy.orm import Session

from repairdesk.db import session as db_session


def get_db() -> Iterator[Session]:
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()

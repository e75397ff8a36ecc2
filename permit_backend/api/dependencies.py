from typing import Callable, Generator

from sqlalchemy.orm import Session

from .. import config as app_config


def get_db() -> Generator[Session, None, None]:
    db = app_config.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request, such as background dispatch."""
    return app_config.SessionLocal

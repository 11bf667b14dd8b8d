from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import PersistenceError
from ..models.base import Base
from ..services.logging import log_event


def make_engine(database_url: str, echo: bool = False):
    kwargs = {"future": True, "echo": echo}
    if database_url.startswith("sqlite"):
        # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            db_path = database_url.split("sqlite:///")[-1]
            Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        # concurrent writers wait on the file lock instead of failing at once
        kwargs["connect_args"] = {"timeout": 30, "check_same_thread": False}
    else:
        kwargs["isolation_level"] = "READ COMMITTED"
        kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **kwargs)


class Database:
    """Engine plus session factory, built once and passed to every service."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        self.engine = make_engine(database_url, echo=echo)
        self._sessionmaker = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self):
        """One transaction: commit on success, roll back on any exception.

        Database errors are logged and re-raised as PersistenceError so no
        driver detail reaches API callers.
        """
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            log_event("error", "db.error", error=str(exc), error_type=type(exc).__name__)
            raise PersistenceError() from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

"""
Database-backed key/value storage for scan checkpoints.
Uses SQLAlchemy, so any supported database URL works (SQLite by default).
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, Column, String, LargeBinary, DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from .kv_storage import KeyValueStore, StorageError

Base = declarative_base()


def utc_now():
    return datetime.now(timezone.utc)


class CheckpointRow(Base):
    """One checkpoint payload per storage key."""
    __tablename__ = 'autoscan_checkpoints'

    key = Column(String(512), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class SqlKeyValueStore(KeyValueStore):
    """Database-backed checkpoint storage."""

    def __init__(self, database_url: str = "sqlite:///autoscan_state/checkpoints.db"):
        """
        Initialize store and create the table if needed.

        Args:
            database_url: SQLAlchemy database URL
        """
        if database_url.startswith("sqlite:///"):
            Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(database_url, echo=False, pool_pre_ping=True)
        Base.metadata.create_all(self._engine)
        self._Session = sessionmaker(bind=self._engine)

    def _get_session(self) -> Session:
        return self._Session()

    def get(self, key: str) -> Optional[bytes]:
        session = self._get_session()
        try:
            row = session.get(CheckpointRow, key)
            return bytes(row.value) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read checkpoint {key}: {e}") from e
        finally:
            session.close()

    def set(self, key: str, value: bytes) -> None:
        session = self._get_session()
        try:
            row = session.get(CheckpointRow, key)
            if row:
                row.value = value
                row.updated_at = utc_now()
            else:
                session.add(CheckpointRow(key=key, value=value))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to write checkpoint {key}: {e}") from e
        finally:
            session.close()

    def delete(self, key: str) -> None:
        session = self._get_session()
        try:
            session.query(CheckpointRow).filter(CheckpointRow.key == key).delete()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to delete checkpoint {key}: {e}") from e
        finally:
            session.close()

    def close(self):
        """Dispose of the connection pool."""
        self._engine.dispose()

"""
Session store: keyed get / put / delete over the sessions table, plus TTL eviction.

Payloads are encrypted at rest (crypto) and converted to and from the
Session model here, so callers never see ORM rows. Every database or
decryption failure surfaces as StoreError with the cause chained.
"""
import logging
import threading
from datetime import datetime, UTC
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy import delete as sql_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from crypto import InvalidToken, decrypt, encrypt
from errors import StoreError
from models import SessionRecord
from schemas import Session, SessionData

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SessionStore:
    """Strongly consistent session table access for one request's DB session."""

    def __init__(self, db: DbSession):
        self.db = db

    def get(self, session_id: str) -> Optional[Session]:
        """Return the last committed write for session_id, or None if unknown."""
        try:
            record = self.db.get(SessionRecord, session_id, populate_existing=True)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Failed to read session") from e
        if record is None:
            return None
        return self._to_session(record)

    def put(self, session: Session) -> None:
        """Insert or blindly overwrite the record for session.session_id."""
        record = SessionRecord(
            session_id=session.session_id,
            user_id=session.user_id,
            data=encrypt(session.data.model_dump_json()),
            create_date=session.create_date,
            update_date=session.update_date,
            expiry_date=session.expiry_date,
            ttl=session.ttl,
        )
        try:
            self.db.merge(record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Failed to save session") from e

    def delete(self, session_id: str) -> None:
        """Delete the record; deleting an unknown id is not an error."""
        try:
            self.db.execute(
                sql_delete(SessionRecord).where(SessionRecord.session_id == session_id)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Failed to delete session") from e

    def evict_expired(self, now: datetime) -> int:
        """Delete every record whose ttl is in the past; returns how many went."""
        try:
            result = self.db.execute(
                sql_delete(SessionRecord).where(SessionRecord.ttl < int(now.timestamp()))
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Failed to evict expired sessions") from e
        if result.rowcount:
            logger.info("Evicted %d expired sessions", result.rowcount)
        return result.rowcount or 0

    @staticmethod
    def _to_session(record: SessionRecord) -> Session:
        try:
            data = SessionData.model_validate_json(decrypt(record.data))
        except (InvalidToken, ValidationError) as e:
            raise StoreError("Stored session is unreadable") from e
        return Session(
            session_id=record.session_id,
            user_id=record.user_id,
            data=data,
            create_date=_as_utc(record.create_date),
            update_date=_as_utc(record.update_date),
            expiry_date=_as_utc(record.expiry_date),
            ttl=record.ttl,
        )


def run_sweeper(
    stop: threading.Event,
    interval: int,
    session_factory: Callable[[], DbSession],
    now: Callable[[], datetime],
) -> None:
    """Evict expired sessions every `interval` seconds until `stop` is set."""
    while not stop.wait(interval):
        db = session_factory()
        try:
            SessionStore(db).evict_expired(now())
        except StoreError:
            logger.exception("Session sweep failed")
        finally:
            db.close()

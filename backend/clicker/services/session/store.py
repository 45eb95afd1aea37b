from typing import List

from sqlalchemy.exc import SQLAlchemyError

from clicker import db
from clicker.errors import RemoteIOError
from clicker.models import ScoreRecord


class ScoreStore:
    """Where finished sessions are kept."""

    def append(self, record: ScoreRecord) -> None:
        raise NotImplementedError

    def query_recent(self, user_id: int, limit: int = 10) -> List[ScoreRecord]:
        raise NotImplementedError


class SqlScoreStore(ScoreStore):
    """ScoreStore on the application database. Needs an app context."""

    def append(self, record: ScoreRecord) -> None:
        try:
            db.session.add(record)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteIOError(f'could not save score for user {record.user_id}: {exc}') from exc

    def query_recent(self, user_id: int, limit: int = 10) -> List[ScoreRecord]:
        """Most recent first; rows written in the same instant keep insertion order."""
        try:
            return (
                ScoreRecord.query
                .filter_by(user_id=user_id)
                .order_by(ScoreRecord.timestamp.desc(), ScoreRecord.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteIOError(f'could not load scores for user {user_id}: {exc}') from exc

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from roster.errors import ConflictError, StorageError


def describe_db_error(exc: SQLAlchemyError) -> str:
    raw = str(getattr(exc, "orig", None) or exc).strip()
    return raw.splitlines()[0] if raw else exc.__class__.__name__


def commit_or_raise(db: Session, *, action: str, conflict_message: str | None = None) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if conflict_message is not None:
            raise ConflictError(conflict_message) from exc
        raise StorageError(f"{action} failed: {describe_db_error(exc)}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"{action} failed: {describe_db_error(exc)}") from exc

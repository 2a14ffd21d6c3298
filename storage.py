"""
=============================================================================
STORAGE.PY — Record Store
=============================================================================
Durable CRUD for every entity, keyed by auto-incrementing integer id.

  create(Model, **fields)         → new record (id + created_at stamped)
  get_by_id(Model, id)            → record or NotFoundError
  list_by_user_id(Model, user_id) → the user's records, newest first by default
  update(Model, id, **fields)     → merged record or NotFoundError
  delete(Model, id)               → idempotent

Ownership checks are NOT done here; the routes decide who may touch what.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import ConflictError, NotFoundError, ValidationError
from models import User, USER_OWNED_MODELS

logger = logging.getLogger("mindwell.storage")


def _integrity_error(model, error: IntegrityError):
    """
    Database constraint failure → domain error.
      UNIQUE                        → ConflictError (409)
      NOT NULL, CHECK, anything else → ValidationError (422)
    """
    reason = str(error.orig).lower()
    if "unique" in reason or "duplicate key" in reason:
        return ConflictError(f"{model.__name__} violates a uniqueness constraint")
    if "not null" in reason or "not-null" in reason:
        return ValidationError(f"{model.__name__} is missing a required value")
    return ValidationError(f"{model.__name__} violates a database constraint")


class RecordStore:
    """Thin repository over one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # ─────────────────────────────────────────────────────────────────────
    # CREATE
    # ─────────────────────────────────────────────────────────────────────

    def create(self, model, commit: bool = True, **fields):
        """
        commit=False → the record is only flushed (id assigned) and is
        committed or rolled back by whoever owns the transaction.
        """
        if model is User:
            self._check_user_unique(fields.get("username"), fields.get("email"))
        elif model in USER_OWNED_MODELS:
            # foreign keys must reference an existing user
            self.get_by_id(User, fields.get("user_id"))

        if hasattr(model, "created_at"):
            fields.setdefault("created_at", datetime.utcnow())

        record = model(**fields)
        self.db.add(record)
        try:
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise _integrity_error(model, e) from e
        if commit:
            self.db.refresh(record)
        return record

    def _check_user_unique(self, username: Optional[str], email: Optional[str]):
        if username and self.get_user_by_username(username):
            raise ConflictError("Username already exists")
        if email and self.get_user_by_email(email):
            raise ConflictError("Email already exists")

    # ─────────────────────────────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────────────────────────────

    def get_by_id(self, model, record_id: int):
        record = self.db.get(model, record_id) if record_id is not None else None
        if record is None:
            raise NotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def list_by_user_id(
        self,
        model,
        user_id: int,
        ascending: bool = False,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
        **filters,
    ) -> list:
        """
        All records of a user ordered by created_at (ties broken by id).

        ascending=False → display lists (newest first)
        ascending=True  → chat history (conversation order)
        since           → only records created at or after that moment
        limit           → keep the N most recent, still in the requested order
        """
        query = self.db.query(model).filter(model.user_id == user_id)
        for column, value in filters.items():
            query = query.filter(getattr(model, column) == value)
        if since is not None:
            query = query.filter(model.created_at >= since)

        newest_first = query.order_by(model.created_at.desc(), model.id.desc())
        if limit is not None:
            records = newest_first.limit(limit).all()
        else:
            records = newest_first.all()

        if ascending:
            records.reverse()
        return records

    def latest_by_user_id(self, model, user_id: int):
        """Most recent record (max created_at) or None"""
        records = self.list_by_user_id(model, user_id, limit=1)
        return records[0] if records else None

    def count_by_user_id(self, model, user_id: int, **filters) -> int:
        query = self.db.query(model).filter(model.user_id == user_id)
        for column, value in filters.items():
            query = query.filter(getattr(model, column) == value)
        return query.count()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    # ─────────────────────────────────────────────────────────────────────
    # UPDATE / DELETE
    # ─────────────────────────────────────────────────────────────────────

    def update(self, model, record_id: int, **fields):
        record = self.get_by_id(model, record_id)
        for key, value in fields.items():
            setattr(record, key, value)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise _integrity_error(model, e) from e
        self.db.refresh(record)
        return record

    def delete(self, model, record_id: int) -> bool:
        """Returns True if something was deleted. Missing ids are not an error."""
        record = self.db.get(model, record_id)
        if record is None:
            return False
        self.db.delete(record)
        self.db.commit()
        logger.info(f"🗑️ {model.__name__} {record_id} deleted")
        return True

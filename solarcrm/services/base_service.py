"""Session ownership shared by the CRM services.

Services accept the request-scoped session from the session bridge; scripts and
tests may omit it and get a fresh one from ``solarcrm.database.db``.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from solarcrm.core.exceptions import ConflictError, NotFoundError
from solarcrm.database.db import new_session

ModelT = TypeVar("ModelT")


class BaseService:
    def __init__(self, db: Session | None = None) -> None:
        self.db = db if db is not None else new_session()

    def commit(self) -> None:
        """Commit, mapping unique/foreign-key violations to ``ConflictError``."""
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("Write conflicts with an existing record.") from exc
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def close(self) -> None:
        self.db.close()

    def get_or_404(self, model: type[ModelT], entity_id: Any, message: str | None = None) -> ModelT:
        entity = self.db.get(model, entity_id) if entity_id else None
        if entity is None:
            raise NotFoundError(message or f"{model.__name__} not found")
        return entity

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.rollback()
        self.close()

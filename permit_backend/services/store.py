from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Base
from ..core.errors import NotFoundError, StoreError
from ..models import models

logger = logging.getLogger(__name__)

TABLES: Dict[str, Type[Base]] = {
    model.__tablename__: model
    for model in (
        models.Profile,
        models.PermitType,
        models.Permit,
        models.BuildingPermitApplicant,
        models.BuildingConstructionDetail,
        models.BuildingInspector,
        models.BuildingEngineer,
        models.BuildingPermitDetail,
        models.BusinessTaxpayer,
        models.BusinessEstablishment,
        models.BusinessEmployment,
        models.BusinessLessor,
        models.BusinessPermitDetail,
        models.MotorelaPermit,
        models.PermitDocument,
        models.Payment,
        models.PermitAudit,
        models.UploadedImage,
        models.Notification,
    )
}


def row_to_dict(row: Optional[Base]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class AggregateStore:
    """Single-row CRUD over named tables.

    Every call is its own unit of work: it commits on success and rolls back on
    failure. Callers never get a transaction spanning more than one statement.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def model_for(self, table: str) -> Type[Base]:
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(table, "resolve", "unknown table") from None

    def _fail(self, table: str, operation: str, exc: SQLAlchemyError) -> StoreError:
        self.session.rollback()
        logger.error("Store %s on %s failed: %s", operation, table, exc)
        return StoreError(table, operation, str(exc.__cause__ or exc))

    def insert(self, table: str, row: Dict[str, Any]) -> Base:
        model = self.model_for(table)
        instance = model(**row)
        try:
            self.session.add(instance)
            self.session.commit()
            self.session.refresh(instance)
        except SQLAlchemyError as exc:
            raise self._fail(table, "insert", exc) from exc
        return instance

    def update(self, table: str, key: Dict[str, Any], patch: Dict[str, Any]) -> Base:
        model = self.model_for(table)
        try:
            instance = self.session.query(model).filter_by(**key).first()
            if instance is None:
                raise NotFoundError(f"No {table} row matches {key}.")
            for field, value in patch.items():
                setattr(instance, field, value)
            self.session.add(instance)
            self.session.commit()
            self.session.refresh(instance)
        except SQLAlchemyError as exc:
            raise self._fail(table, "update", exc) from exc
        return instance

    def delete(self, table: str, key: Dict[str, Any]) -> int:
        model = self.model_for(table)
        try:
            deleted = self.session.query(model).filter_by(**key).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, "delete", exc) from exc
        # Bulk deletes bypass the identity map; drop anything cached for this table.
        self.session.expire_all()
        return deleted

    def select_one(self, table: str, **filters: Any) -> Optional[Base]:
        model = self.model_for(table)
        try:
            return self.session.query(model).filter_by(**filters).first()
        except SQLAlchemyError as exc:
            raise self._fail(table, "select", exc) from exc

    def select_many(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Sequence[str] = (),
    ) -> List[Base]:
        """Select rows matching ``filters``; ``order`` names columns, ``-`` prefix for descending."""
        model = self.model_for(table)
        query = self.session.query(model)
        if filters:
            query = query.filter_by(**filters)
        for column_name in order:
            descending = column_name.startswith("-")
            column = getattr(model, column_name.lstrip("-"))
            query = query.order_by(column.desc() if descending else column.asc())
        try:
            return query.all()
        except SQLAlchemyError as exc:
            raise self._fail(table, "select", exc) from exc

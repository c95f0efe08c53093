from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from consultapi.models.withdrawal import (
    RESERVED_WITHDRAWAL_STATUSES,
    WithdrawalRequest as WithdrawalModel,
)
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.withdrawal import WithdrawalRequest as WithdrawalSchema


class WithdrawalRepository(BaseRepository[WithdrawalModel, WithdrawalSchema]):
    def __init__(self, db: Session):
        super().__init__(WithdrawalModel, WithdrawalSchema, db)

    def lock(self, withdrawal_id: int) -> Optional[WithdrawalSchema]:
        return self._to_schema(self._get_model(withdrawal_id, for_update=True))

    def sum_reserved(self, advisor_id: int) -> int:
        """pending/approved/processing 출금 합계"""
        total = (
            self.db.query(func.coalesce(func.sum(self.model_class.amount), 0))
            .filter(
                and_(
                    self.model_class.advisor_id == advisor_id,
                    self.model_class.status.in_(RESERVED_WITHDRAWAL_STATUSES),
                )
            )
            .scalar()
        )
        return int(total or 0)

    def compare_and_set_status(
        self,
        withdrawal_id: int,
        expected: str,
        target: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        values: Dict[Any, Any] = {self.model_class.status: target}
        for key, value in (extra or {}).items():
            values[getattr(self.model_class, key)] = value
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == withdrawal_id,
                    self.model_class.status == expected,
                )
            )
            .update(values, synchronize_session="fetch")
        )
        return updated == 1

    def list_for_advisor(self, advisor_id: int) -> List[WithdrawalSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.advisor_id == advisor_id)
            .order_by(self.model_class.id.desc())
            .all()
        )
        return self._to_schemas(rows)

    def list_all(
        self, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[WithdrawalSchema]:
        query = self.db.query(self.model_class)
        if status:
            query = query.filter(self.model_class.status == status)
        rows = query.order_by(self.model_class.id.desc()).offset(offset).limit(limit).all()
        return self._to_schemas(rows)

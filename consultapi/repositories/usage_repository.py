from datetime import date
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consultapi.models.usage import UsageCounter as UsageCounterModel


# 액션 -> 카운터 컬럼
ACTION_COLUMNS = {
    "general-chat": "general_chat_used",
    "advisor-chat": "advisor_chat_used",
}


class UsageCounterRepository:
    """
    일일 사용량 카운터 리포지토리

    증가는 조건부 UPDATE 한 문장으로 처리해 동시 요청에서도 한도를 넘지 않는다.
    커밋은 호출자가 한다.
    """

    def __init__(self, db: Session):
        self.db = db
        self.model_class = UsageCounterModel

    def _column(self, action: str):
        return getattr(self.model_class, ACTION_COLUMNS[action])

    def ensure_row(self, user_id: int, usage_date: date) -> None:
        """(user_id, usage_date) 행이 없으면 0으로 생성 (INSERT ... ON CONFLICT DO NOTHING)"""
        dialect = self.db.get_bind().dialect.name
        values = {
            "user_id": user_id,
            "usage_date": usage_date,
            "general_chat_used": 0,
            "advisor_chat_used": 0,
        }

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert

            stmt = (
                insert(self.model_class)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["user_id", "usage_date"])
            )
            self.db.execute(stmt)
            return

        # 그 외 DB: savepoint 안에서 삽입하고 중복이면 무시
        if self.get(user_id, usage_date) is not None:
            return
        try:
            with self.db.begin_nested():
                self.db.add(self.model_class(**values))
        except IntegrityError:
            pass

    def try_increment(
        self, user_id: int, usage_date: date, action: str, amount: int, limit: int
    ) -> bool:
        """
        col + amount <= limit 인 경우에만 증가.

        Returns: 증가했으면 True, 한도 초과로 매칭된 행이 없으면 False
        """
        column = self._column(action)
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.user_id == user_id,
                    self.model_class.usage_date == usage_date,
                    column + amount <= limit,
                )
            )
            .update({column: column + amount}, synchronize_session=False)
        )
        return updated == 1

    def increment(self, user_id: int, usage_date: date, action: str, amount: int) -> None:
        """무제한 등급용 무조건 증가"""
        column = self._column(action)
        self.db.query(self.model_class).filter(
            and_(
                self.model_class.user_id == user_id,
                self.model_class.usage_date == usage_date,
            )
        ).update({column: column + amount}, synchronize_session=False)

    def get(self, user_id: int, usage_date: date) -> Optional[UsageCounterModel]:
        return (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.user_id == user_id,
                    self.model_class.usage_date == usage_date,
                )
            )
            .populate_existing()
            .first()
        )

    def get_used(self, user_id: int, usage_date: date, action: str) -> int:
        """현재 사용량 (행이 없으면 0)"""
        column = self._column(action)
        value = (
            self.db.query(column)
            .filter(
                and_(
                    self.model_class.user_id == user_id,
                    self.model_class.usage_date == usage_date,
                )
            )
            .scalar()
        )
        return int(value or 0)

"""
사용량 카운터 저장소

QuotaStore 인터페이스 하나에 두 구현을 둔다.
- SqlQuotaStore: 기본. usage_counters 테이블의 조건부 UPDATE로 원자적 증가
- InMemoryQuotaStore: DB 장애 시에만 쓰는 프로세스 내 카운터 (워커 간 공유되지 않음)
"""

import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from consultapi.database.session import transactional
from consultapi.repositories.usage_repository import UsageCounterRepository


class QuotaStore(ABC):
    @abstractmethod
    def consume(
        self,
        user_id: int,
        usage_date: date,
        action: str,
        amount: int,
        limit: Optional[int],
    ) -> Tuple[bool, int]:
        """
        used + amount <= limit 이면 증가 (limit이 None이면 항상 증가).

        Returns: (증가 여부, 처리 후 사용량). 거부된 경우 사용량은 변하지 않은 현재 값.
        """

    @abstractmethod
    def current(self, user_id: int, usage_date: date, action: str) -> int:
        """현재 사용량 (증가 없음)"""


class SqlQuotaStore(QuotaStore):
    def __init__(self, db: Session):
        self.db = db
        self.usage_repo = UsageCounterRepository(db)

    def consume(self, user_id, usage_date, action, amount, limit):
        with transactional(self.db):
            self.usage_repo.ensure_row(user_id, usage_date)
            if limit is None:
                self.usage_repo.increment(user_id, usage_date, action, amount)
                allowed = True
            else:
                allowed = self.usage_repo.try_increment(
                    user_id, usage_date, action, amount, limit
                )
            used = self.usage_repo.get_used(user_id, usage_date, action)
        return allowed, used

    def current(self, user_id, usage_date, action):
        return self.usage_repo.get_used(user_id, usage_date, action)


class InMemoryQuotaStore(QuotaStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[Tuple[int, date, str], int] = {}

    def consume(self, user_id, usage_date, action, amount, limit):
        key = (user_id, usage_date, action)
        with self._lock:
            used = self._counts.get(key, 0)
            if limit is not None and used + amount > limit:
                return False, used
            used += amount
            self._counts[key] = used
            return True, used

    def current(self, user_id, usage_date, action):
        with self._lock:
            return self._counts.get((user_id, usage_date, action), 0)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

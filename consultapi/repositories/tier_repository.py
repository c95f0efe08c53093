from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from consultapi.models.usage import TierLimit as TierLimitModel
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.usage import TierLimit as TierLimitSchema


class TierLimitRepository(BaseRepository[TierLimitModel, TierLimitSchema]):
    def __init__(self, db: Session):
        super().__init__(TierLimitModel, TierLimitSchema, db)

    def get_by_tier(self, tier: str) -> Optional[TierLimitSchema]:
        return self.get_by_field("tier", tier)

    def upsert(self, tier: str, fields: Dict[str, Any], commit: bool = True) -> TierLimitSchema:
        """등급 행이 있으면 수정, 없으면 생성"""
        instance = (
            self.db.query(self.model_class)
            .filter(self.model_class.tier == tier)
            .populate_existing()
            .first()
        )
        if instance is None:
            created = self.create(commit=commit, tier=tier, **fields)
            assert created is not None
            return created

        updated = self.update(instance.id, commit=commit, **fields)
        assert updated is not None
        return updated

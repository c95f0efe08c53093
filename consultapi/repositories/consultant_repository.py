from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from consultapi.models.consultant import Consultant as ConsultantModel, ConsultantStatus
from consultapi.models.consultation import AdvisorRating as AdvisorRatingModel
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.consultant import Consultant as ConsultantSchema
from consultapi.utils.timezone_utils import utc_now


class ConsultantRepository(BaseRepository[ConsultantModel, ConsultantSchema]):
    def __init__(self, db: Session):
        super().__init__(ConsultantModel, ConsultantSchema, db)

    def get_by_user_id(self, user_id: int) -> Optional[ConsultantSchema]:
        return self.get_by_field("user_id", user_id)

    def list_active(self) -> List[ConsultantSchema]:
        """활성 상담사 풀 (id 순)"""
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.status == ConsultantStatus.ACTIVE.value)
            .order_by(self.model_class.id.asc())
            .all()
        )
        return self._to_schemas(rows)

    def lock(self, consultant_id: int) -> Optional[ConsultantSchema]:
        """
        상담사 행 잠금 (출금 생성 직렬화용)

        updated_at 갱신으로 쓰기 잠금을 먼저 잡는다. SQLite는 FOR UPDATE를 무시한다.
        """
        self.db.query(self.model_class).filter(
            self.model_class.id == consultant_id
        ).update({"updated_at": utc_now()}, synchronize_session=False)
        return self._to_schema(self._get_model(consultant_id, for_update=True))

    def refresh_rating(self, consultant_id: int) -> Optional[ConsultantSchema]:
        """평가 테이블에서 평균(별점 × 100)과 건수를 다시 계산해 반영 (커밋하지 않음)"""
        avg_score, rating_count = (
            self.db.query(
                func.avg(AdvisorRatingModel.score), func.count(AdvisorRatingModel.id)
            )
            .filter(AdvisorRatingModel.advisor_id == consultant_id)
            .one()
        )
        rating_avg = int(round(float(avg_score or 0) * 100))
        return self.update(
            consultant_id,
            commit=False,
            rating_avg=rating_avg,
            rating_count=int(rating_count or 0),
        )

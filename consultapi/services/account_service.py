import logging

from sqlalchemy.orm import Session

from consultapi.core.exceptions import InvalidStateError, NotFoundError
from consultapi.database.session import transactional
from consultapi.models.consultation import RequestStatus
from consultapi.repositories.consultation_repository import ConsultationRepository
from consultapi.repositories.order_repository import OrderRepository
from consultapi.repositories.user_repository import UserRepository
from consultapi.schemas.user import AnonymizeResponse

logger = logging.getLogger(__name__)


class AccountService:
    """계정 삭제 시 결제 기록 익명화"""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)
        self.request_repo = ConsultationRepository(db)
        self.order_repo = OrderRepository(db)

    def anonymize_financial_records(self, user_id: int) -> AnonymizeResponse:
        """
        사용자의 모든 주문 payer를 익명 결제자 예약 계정으로 옮긴다.

        진행 중(in_progress)인 상담이 있으면 InvalidStateError.
        원장 금액과 상태는 그대로 유지된다.
        """
        if self.user_repo.get_by_id(user_id) is None:
            raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
        if self.request_repo.exists_in_status(user_id, RequestStatus.IN_PROGRESS.value):
            raise InvalidStateError(
                "User has a consultation in progress",
                details={"user_id": user_id},
            )

        with transactional(self.db):
            sentinel = self.user_repo.ensure_anonymized_payer(commit=False)
            reassigned = self.order_repo.reassign_payer(user_id, sentinel.id)

        logger.info(
            f"Anonymized financial records of user {user_id}: {reassigned} orders -> payer {sentinel.id}"
        )
        return AnonymizeResponse(
            user_id=user_id,
            sentinel_user_id=sentinel.id,
            orders_reassigned=reassigned,
        )

# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .consultant_repository import ConsultantRepository
from .consultation_repository import (
    AssignmentRepository,
    ConsultationRepository,
    RatingRepository,
    TransitionRepository,
)
from .usage_repository import UsageCounterRepository
from .tier_repository import TierLimitRepository
from .order_repository import OrderRepository
from .withdrawal_repository import WithdrawalRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ConsultantRepository",
    "ConsultationRepository",
    "AssignmentRepository",
    "TransitionRepository",
    "RatingRepository",
    "UsageCounterRepository",
    "TierLimitRepository",
    "OrderRepository",
    "WithdrawalRepository",
]

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from consultapi.containers import Container
from consultapi.database.session import get_db

# Services
from consultapi.services.account_service import AccountService
from consultapi.services.consultation_service import ConsultationService
from consultapi.services.escrow_service import EscrowService
from consultapi.services.matching_service import MatchingService
from consultapi.services.quota_service import QuotaService
from consultapi.services.tier_service import TierService
from consultapi.services.withdrawal_service import WithdrawalService


def get_container(request: Request) -> Container:
    return request.app.container


def get_tier_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> TierService:
    return container.services.tier_service(db=db)


def get_quota_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> QuotaService:
    return container.services.quota_service(
        db=db, tier_service=container.services.tier_service(db=db)
    )


def get_consultation_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> ConsultationService:
    return container.services.consultation_service(
        db=db, tier_service=container.services.tier_service(db=db)
    )


def get_matching_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> MatchingService:
    return container.services.matching_service(db=db)


def get_escrow_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> EscrowService:
    return container.services.escrow_service(db=db)


def get_withdrawal_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> WithdrawalService:
    return container.services.withdrawal_service(db=db)


def get_account_service(
    db: Session = Depends(get_db), container: Container = Depends(get_container)
) -> AccountService:
    return container.services.account_service(db=db)

"""
기본 데이터 시드 스크립트
- 등급별 한도 기본값
- 익명 결제자 예약 계정
- (선택) 로컬 개발용 상담사 풀

사용법: python scripts/seed_data.py [--with-sample-consultants]
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from consultapi.database.session import get_db_context
from consultapi.models.consultant import Consultant
from consultapi.repositories.user_repository import UserRepository
from consultapi.services.tier_service import TierService

SAMPLE_CONSULTANTS = [
    {
        "name": "Legal Advisor A",
        "specialty": "legal",
        "specialties": ["legal", "contracts"],
        "languages": ["ar", "en"],
        "availability": ["sun-am", "mon-pm"],
        "experience_years": 8,
        "rating_avg": 470,
        "rating_count": 31,
    },
    {
        "name": "Finance Advisor B",
        "specialty": "finance",
        "specialties": ["finance", "tax"],
        "languages": ["en"],
        "availability": ["tue-am"],
        "experience_years": 5,
        "rating_avg": 430,
        "rating_count": 12,
    },
]


def seed_tier_limits():
    """등급별 한도 기본값 시드 (이미 있는 등급은 건너뜀)"""
    with get_db_context() as db:
        created = TierService(db).ensure_default_tier_limits()
    print(f"✅ 등급 한도 시드 완료: {len(created)}개 생성")
    for limit in created:
        print(
            f"   {limit.tier:10s} general={limit.general_chat_daily_limit} "
            f"advisor={limit.advisor_chat_daily_limit} discount={limit.discount_rate_bps}bps "
            f"priority={limit.priority_weight}"
        )


def seed_anonymized_payer():
    """익명 결제자 예약 계정 생성"""
    with get_db_context() as db:
        sentinel = UserRepository(db).ensure_anonymized_payer(commit=False)
    print(f"✅ 익명 결제자 계정: id={sentinel.id}")


def seed_sample_consultants():
    """로컬 개발용 상담사 풀"""
    with get_db_context() as db:
        if db.query(Consultant).count() > 0:
            print("ℹ️ 상담사 데이터가 이미 있어 건너뜀")
            return
        db.add_all(Consultant(**entry) for entry in SAMPLE_CONSULTANTS)
    print(f"✅ 상담사 시드 완료: {len(SAMPLE_CONSULTANTS)}명")


if __name__ == "__main__":
    try:
        seed_tier_limits()
        seed_anonymized_payer()
        if "--with-sample-consultants" in sys.argv:
            seed_sample_consultants()
    except Exception as e:
        print(f"❌ 시드 실패: {str(e)}")
        raise

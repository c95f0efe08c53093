from sqlalchemy.engine import Engine

from consultapi.models.base import Base

# 메타데이터 등록용 import
from consultapi.models import consultant, consultation, ledger, usage, user, withdrawal  # noqa: F401


def create_all(engine: Engine) -> None:
    """모든 테이블 생성 (없는 테이블만)"""
    Base.metadata.create_all(bind=engine)

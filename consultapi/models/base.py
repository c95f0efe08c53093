from sqlalchemy import BigInteger, Column, DateTime, Integer, MetaData, func
from sqlalchemy.orm import declarative_base, declared_attr

# 마이그레이션에서 제약 조건 이름이 DB마다 달라지지 않도록 고정
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))

# SQLite는 INTEGER PRIMARY KEY만 자동 증가
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class TimestampMixin:
    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )


class BaseModel(Base, TimestampMixin):
    """created_at/updated_at을 가진 테이블의 베이스"""

    __abstract__ = True


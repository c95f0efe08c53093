from contextlib import contextmanager

from sqlalchemy.orm import Session

from consultapi.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context():
    """스크립트용 세션 - 블록 전체를 한 트랜잭션으로 커밋"""
    db = SessionLocal()
    try:
        with transactional(db):
            yield db
    finally:
        db.close()


@contextmanager
def transactional(db: Session):
    """
    서비스 연산 하나를 하나의 트랜잭션으로 묶는다.

    블록이 정상 종료되면 commit, 예외가 나면 rollback 후 그대로 전파한다.
    상태 전이와 원장 기록이 함께 커밋되거나 함께 취소되어야 하는 곳에서 사용.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from consultapi.config import settings
from consultapi.database.connection import engine
from consultapi.database.schema import create_all


def init_db():
    """데이터베이스 초기화 (없는 테이블만 생성)"""
    try:
        create_all(engine)
        print(f"Database initialized successfully: {engine.url.render_as_string(hide_password=True)}")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    print(f"Environment: {settings.ENVIRONMENT}")
    init_db()

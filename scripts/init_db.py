import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from findme.models import Base
from findme.database.connection import engine
from findme.config import settings


def init_db():
    """데이터베이스 초기화 (테이블 생성)"""
    try:
        Base.metadata.create_all(bind=engine)
        print(
            f"Database initialized successfully: {engine.url.render_as_string(hide_password=True)}"
        )
        print(f"Tables: {', '.join(sorted(Base.metadata.tables.keys()))}")
    except Exception as e:
        print(f"Database initialization failed ({settings.ENVIRONMENT}): {str(e)}")
        raise


if __name__ == "__main__":
    init_db()

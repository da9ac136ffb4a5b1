from sqlalchemy import BigInteger, Column, DateTime, Integer, func
from sqlalchemy.orm import Mapped, declarative_base, declared_attr, mapped_column

Base = declarative_base()

# SQLite는 INTEGER PRIMARY KEY만 rowid 자동 증가를 지원
IdType = BigInteger().with_variant(Integer, "sqlite")


class TimestampMixin:
    """타임스탬프 필드를 위한 믹스인"""

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now())

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
        )


class BaseModel(Base, TimestampMixin):
    """모든 모델의 베이스 클래스 (자동 증가 id + 타임스탬프)"""

    __abstract__ = True

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id})>"

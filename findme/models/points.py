"""
포인트 시스템 데이터 모델

사용자별 잔액(user_points)과 모든 포인트 변동 내역(point_transactions)을 정의합니다.
잔액 테이블은 거래 내역 합계의 캐시이며, 거래 내역은 완전한 감사 추적을 제공합니다.
"""

import enum
from typing import Optional

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from findme.models.base import BaseModel


class TransactionType(str, enum.Enum):
    EARNED = "earned"
    SPENT = "spent"


class PointAction(str, enum.Enum):
    """거래 사유 태그 (action 컬럼은 자유 문자열이며 아래는 시스템이 쓰는 값)"""

    REGISTRATION = "registration"
    MISSING_REPORT = "missing_report"
    SIGHTING_REPORT = "sighting_report"
    SOCIAL_SHARE = "social_share"
    COMMUNITY_PROJECT = "community_project"
    REWARD_REDEMPTION = "reward_redemption"
    PROJECT_STATUS_REVERTED = "project_status_reverted"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class UserPointsBalance(BaseModel):
    """
    사용자 포인트 잔액 - 사용자당 1행

    불변식: current_points == total_earned_points - total_spent_points
    - 첫 적립 시 생성되며 삭제되지 않음
    - PointService의 적립/차감/재계산을 통해서만 변경됨
    """

    __tablename__ = "user_points"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), unique=True, nullable=False
    )
    current_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_earned_points: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_spent_points: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    def __repr__(self):
        return (
            f"<UserPointsBalance(user_id={self.user_id}, current={self.current_points}, "
            f"earned={self.total_earned_points}, spent={self.total_spent_points})>"
        )


class PointTransaction(BaseModel):
    """
    포인트 거래 내역 - append-only

    한번 생성된 레코드는 수정/삭제되지 않습니다.
    points는 항상 양수이며 방향은 type(earned/spent)으로 구분합니다.
    """

    __tablename__ = "point_transactions"
    __table_args__ = (
        Index("idx_point_transactions_user_created", "user_id", "created_at"),
        Index("idx_point_transactions_action", "action"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    # 예: "registration", "social_share", "reward_redemption"
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # report_id, project_id, platform 등 부가 정보 ("metadata"는 declarative 예약어)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    @property
    def formatted_points(self) -> str:
        sign = "+" if self.type == TransactionType.EARNED.value else "-"
        return f"{sign}{self.points}"

import enum
import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from findme.models.base import BaseModel
from findme.utils.timezone_utils import ensure_utc, utc_now


class RewardStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VoucherStatus(str, enum.Enum):
    ACTIVE = "active"  # 사용 가능
    USED = "used"  # 사용 완료
    EXPIRED = "expired"  # 만료 (조회 시 expires_at으로 판단, 배치로 갱신하지 않음)


class RewardCategory(BaseModel):
    __tablename__ = "reward_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    rewards: Mapped[List["Reward"]] = relationship(back_populates="category")


class Reward(BaseModel):
    """
    리워드 카탈로그 항목

    - stock_quantity == 0 이면 무제한
    - stock_quantity > 0 이면 redeemed_count <= stock_quantity 유지
    """

    __tablename__ = "rewards"

    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reward_categories.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_required: Mapped[int] = mapped_column(Integer, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    redeemed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    image_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    voucher_code_prefix: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=RewardStatus.ACTIVE.value, nullable=False
    )

    category: Mapped["RewardCategory"] = relationship(back_populates="rewards")
    user_rewards: Mapped[List["UserReward"]] = relationship(back_populates="reward")

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity > 0 and self.redeemed_count >= self.stock_quantity

    @property
    def is_available(self) -> bool:
        if self.status != RewardStatus.ACTIVE.value:
            return False
        return not self.is_out_of_stock

    @property
    def remaining_stock(self) -> Optional[int]:
        """남은 재고 (무제한이면 None)"""
        if self.stock_quantity == 0:
            return None
        return self.stock_quantity - self.redeemed_count


class UserReward(BaseModel):
    """
    교환된 바우처

    points_spent는 교환 시점 가격의 스냅샷이며 이후 카탈로그 가격 변경과 무관합니다.
    """

    __tablename__ = "user_rewards"
    __table_args__ = (
        Index("idx_user_rewards_user_status", "user_id", "status"),
        Index("idx_user_rewards_expires_at", "expires_at"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    reward_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("rewards.id"), nullable=False
    )
    voucher_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=VoucherStatus.ACTIVE.value, nullable=False
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    reward: Mapped["Reward"] = relationship(back_populates="user_rewards")

    @property
    def is_expired(self) -> bool:
        """status와 무관하게 expires_at 경과 여부로만 판단"""
        return utc_now() > ensure_utc(self.expires_at)

    @property
    def is_active(self) -> bool:
        return self.status == VoucherStatus.ACTIVE.value and not self.is_expired

    @property
    def days_until_expiry(self) -> int:
        if self.is_expired:
            return 0
        return (ensure_utc(self.expires_at) - utc_now()).days

    @property
    def qr_code_data(self) -> str:
        """외부 QR 렌더러에 전달하는 페이로드"""
        return json.dumps(
            {
                "voucher_code": self.voucher_code,
                "reward_name": self.reward.name if self.reward else None,
                "redeemed_at": ensure_utc(self.redeemed_at).isoformat(),
                "expires_at": ensure_utc(self.expires_at).isoformat(),
            }
        )

import enum
from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from findme.models.base import BaseModel


class SharePlatform(str, enum.Enum):
    FACEBOOK = "facebook"
    TWITTER = "twitter"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    INSTAGRAM = "instagram"


class SocialShareRecord(BaseModel):
    """
    실종 신고 건 SNS 공유 기록

    (user_id, report_id, platform) 조합당 포인트는 한 번만 지급됩니다.
    report_id는 외부 신고 테이블을 가리키며 여기서는 FK를 두지 않습니다.
    """

    __tablename__ = "social_shares"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "report_id", "platform", name="uq_social_share_user_report_platform"
        ),
        Index("idx_social_shares_user_awarded", "user_id", "points_awarded"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    report_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    share_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_awarded: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    @property
    def platform_name(self) -> str:
        return str(self.platform).capitalize()

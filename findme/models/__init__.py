# 모든 모델을 Base.metadata에 등록하기 위한 import

from .base import Base, BaseModel
from .user import User, UserRole
from .points import PointAction, PointTransaction, TransactionType, UserPointsBalance
from .social_share import SharePlatform, SocialShareRecord
from .rewards import Reward, RewardCategory, RewardStatus, UserReward, VoucherStatus

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "UserRole",
    "PointAction",
    "PointTransaction",
    "TransactionType",
    "UserPointsBalance",
    "SharePlatform",
    "SocialShareRecord",
    "Reward",
    "RewardCategory",
    "RewardStatus",
    "UserReward",
    "VoucherStatus",
]

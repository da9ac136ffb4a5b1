from .base import BaseRepository
from .points_repository import PointsRepository
from .rewards_repository import RewardsRepository
from .social_share_repository import SocialShareRepository

__all__ = [
    "BaseRepository",
    "PointsRepository",
    "RewardsRepository",
    "SocialShareRepository",
]

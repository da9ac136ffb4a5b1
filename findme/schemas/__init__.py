from .user import User
from .points import PointsBalanceResponse, PointsHistoryResponse, SocialShareResponse
from .rewards import RewardCatalogResponse, RewardItem, VoucherResponse

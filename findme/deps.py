from fastapi import Depends
from sqlalchemy.orm import Session

from findme.database.session import get_db
from findme.config import settings

# Services
from findme.services.point_service import PointService
from findme.services.reward_service import RewardService


def get_point_service(db: Session = Depends(get_db)) -> PointService:
    return PointService(db=db, settings=settings)


def get_reward_service(db: Session = Depends(get_db)) -> RewardService:
    point_service = PointService(db=db, settings=settings)
    return RewardService(db=db, point_service=point_service, settings=settings)

from typing import Optional
from sqlalchemy.orm import Session

from findme.models.social_share import SocialShareRecord as SocialShareModel
from findme.repositories.base import BaseRepository
from findme.schemas.points import SocialShareRequest


class SocialShareRepository(BaseRepository[SocialShareModel, SocialShareRequest]):
    """SNS 공유 기록 리포지토리 - (user, report, platform) 멱등성 키 관리"""

    def __init__(self, db: Session):
        super().__init__(SocialShareModel, SocialShareRequest, db)

    def get_share(
        self, user_id: int, report_id: int, platform: str, for_update: bool = False
    ) -> Optional[SocialShareModel]:
        query = self.db.query(SocialShareModel).filter(
            SocialShareModel.user_id == user_id,
            SocialShareModel.report_id == report_id,
            SocialShareModel.platform == platform,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def mark_awarded(
        self,
        existing: Optional[SocialShareModel],
        user_id: int,
        report_id: int,
        platform: str,
        share_url: Optional[str] = None,
    ) -> SocialShareModel:
        """공유 기록을 points_awarded=True로 생성하거나 갱신 (중복 행 생성 없음)"""
        if existing is not None:
            existing.points_awarded = True
            if share_url:
                existing.share_url = share_url
            self.db.flush()
            return existing

        return self.add(
            SocialShareModel(
                user_id=user_id,
                report_id=report_id,
                platform=platform,
                share_url=share_url,
                points_awarded=True,
            )
        )

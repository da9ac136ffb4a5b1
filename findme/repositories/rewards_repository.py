"""
리워드 리포지토리 - 카탈로그/카테고리/바우처 데이터베이스 접근

commit은 하지 않습니다. 교환 트랜잭션 경계는 RewardService가 결정합니다.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session, joinedload

from findme.models.rewards import (
    Reward as RewardModel,
    RewardCategory as RewardCategoryModel,
    RewardStatus,
    UserReward as UserRewardModel,
    VoucherStatus,
)
from findme.repositories.base import BaseRepository
from findme.schemas.rewards import (
    RewardCategoryResponse,
    RewardItem,
    VoucherResponse,
)
from findme.utils.timezone_utils import format_datetime


class RewardsRepository(BaseRepository[RewardModel, RewardItem]):
    """리워드 리포지토리 - 카탈로그 조회, 재고 관리, 바우처 발급"""

    def __init__(self, db: Session):
        super().__init__(RewardModel, RewardItem, db)

    # ------------------------------------------------------------------
    # 변환
    # ------------------------------------------------------------------

    def to_reward_item(
        self, model_instance: RewardModel, can_redeem: Optional[bool] = None
    ) -> RewardItem:
        """Reward 모델을 RewardItem 스키마로 변환"""
        return RewardItem(
            id=model_instance.id,
            category_id=model_instance.category_id,
            category_name=(
                model_instance.category.name if model_instance.category else None
            ),
            name=model_instance.name,
            description=model_instance.description,
            points_required=model_instance.points_required,
            stock_quantity=model_instance.stock_quantity,
            redeemed_count=model_instance.redeemed_count,
            remaining_stock=model_instance.remaining_stock,
            image_path=model_instance.image_path,
            voucher_code_prefix=model_instance.voucher_code_prefix,
            validity_days=model_instance.validity_days,
            status=RewardStatus(model_instance.status),
            is_available=model_instance.is_available,
            can_redeem=can_redeem,
            created_at=(
                format_datetime(model_instance.created_at)
                if model_instance.created_at
                else None
            ),
        )

    def to_voucher_response(self, model_instance: UserRewardModel) -> VoucherResponse:
        """UserReward 모델을 VoucherResponse 스키마로 변환"""
        return VoucherResponse(
            id=model_instance.id,
            user_id=model_instance.user_id,
            reward_id=model_instance.reward_id,
            reward_name=model_instance.reward.name if model_instance.reward else None,
            voucher_code=model_instance.voucher_code,
            points_spent=model_instance.points_spent,
            redeemed_at=format_datetime(model_instance.redeemed_at),
            expires_at=format_datetime(model_instance.expires_at),
            status=VoucherStatus(model_instance.status),
            used_at=(
                format_datetime(model_instance.used_at)
                if model_instance.used_at
                else None
            ),
            is_expired=model_instance.is_expired,
            is_active=model_instance.is_active,
            days_until_expiry=model_instance.days_until_expiry,
        )

    def to_category_response(
        self, model_instance: RewardCategoryModel, rewards_count: int = 0
    ) -> RewardCategoryResponse:
        return RewardCategoryResponse(
            id=model_instance.id,
            name=model_instance.name,
            description=model_instance.description,
            icon=model_instance.icon,
            rewards_count=rewards_count,
        )

    # ------------------------------------------------------------------
    # 카테고리
    # ------------------------------------------------------------------

    def get_category(self, category_id: int) -> Optional[RewardCategoryModel]:
        return (
            self.db.query(RewardCategoryModel)
            .filter(RewardCategoryModel.id == category_id)
            .first()
        )

    def get_categories_with_counts(self) -> List[RewardCategoryResponse]:
        """카테고리 목록과 카테고리별 리워드 수 (이름순)"""
        rows = (
            self.db.query(RewardCategoryModel, func.count(RewardModel.id))
            .outerjoin(RewardModel, RewardModel.category_id == RewardCategoryModel.id)
            .group_by(RewardCategoryModel.id)
            .order_by(RewardCategoryModel.name, RewardCategoryModel.id)
            .all()
        )
        return [
            self.to_category_response(category, rewards_count=int(count or 0))
            for category, count in rows
        ]

    def count_rewards_in_category(self, category_id: int) -> int:
        return (
            self.db.query(func.count(RewardModel.id))
            .filter(RewardModel.category_id == category_id)
            .scalar()
            or 0
        )

    # ------------------------------------------------------------------
    # 리워드
    # ------------------------------------------------------------------

    def get_reward(
        self, reward_id: int, for_update: bool = False
    ) -> Optional[RewardModel]:
        """리워드 조회 (for_update=True면 행 잠금, 카테고리는 별도 로딩)"""
        if for_update:
            return self.get_model(reward_id, for_update=True)
        return (
            self.db.query(RewardModel)
            .options(joinedload(RewardModel.category))
            .filter(RewardModel.id == reward_id)
            .first()
        )

    def get_active_rewards(self, category_id: Optional[int] = None) -> List[RewardModel]:
        """활성 리워드 목록 (등록순)"""
        query = (
            self.db.query(RewardModel)
            .options(joinedload(RewardModel.category))
            .filter(RewardModel.status == RewardStatus.ACTIVE.value)
        )
        if category_id is not None:
            query = query.filter(RewardModel.category_id == category_id)
        return query.order_by(RewardModel.id.asc()).all()

    def get_all_rewards(self, category_id: Optional[int] = None) -> List[RewardModel]:
        """상태 무관 전체 리워드 (최신순)"""
        query = self.db.query(RewardModel).options(joinedload(RewardModel.category))
        if category_id is not None:
            query = query.filter(RewardModel.category_id == category_id)
        return query.order_by(desc(RewardModel.id)).all()

    def increment_redeemed_count(self, reward: RewardModel) -> None:
        reward.redeemed_count = reward.redeemed_count + 1
        self.db.flush()

    # ------------------------------------------------------------------
    # 바우처
    # ------------------------------------------------------------------

    def create_voucher(
        self,
        user_id: int,
        reward: RewardModel,
        voucher_code: str,
        redeemed_at: datetime,
        expires_at: datetime,
    ) -> UserRewardModel:
        """바우처 발급 (points_spent는 현재 가격 스냅샷)"""
        voucher = UserRewardModel(
            user_id=user_id,
            reward_id=reward.id,
            voucher_code=voucher_code,
            points_spent=reward.points_required,
            redeemed_at=redeemed_at,
            expires_at=expires_at,
            status=VoucherStatus.ACTIVE.value,
        )
        voucher.reward = reward
        self.db.add(voucher)
        self.db.flush()
        return voucher

    def get_voucher(
        self, voucher_id: int, for_update: bool = False
    ) -> Optional[UserRewardModel]:
        query = self.db.query(UserRewardModel).filter(UserRewardModel.id == voucher_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_user_vouchers(
        self, user_id: int, status: Optional[str] = None
    ) -> List[UserRewardModel]:
        """사용자 바우처 목록 (최근 교환순)"""
        query = (
            self.db.query(UserRewardModel)
            .options(joinedload(UserRewardModel.reward))
            .filter(UserRewardModel.user_id == user_id)
        )
        if status:
            query = query.filter(UserRewardModel.status == status)
        return query.order_by(
            desc(UserRewardModel.redeemed_at), desc(UserRewardModel.id)
        ).all()

    def count_vouchers_for_reward(self, reward_id: int) -> int:
        return (
            self.db.query(func.count(UserRewardModel.id))
            .filter(UserRewardModel.reward_id == reward_id)
            .scalar()
            or 0
        )

    # ------------------------------------------------------------------
    # 통계
    # ------------------------------------------------------------------

    def get_stats(self, now: datetime) -> dict:
        """
        리워드/바우처 통계 집계

        바우처 상태는 저장된 status가 아니라 expires_at 기준의 실효 상태로 분류합니다.
        """
        total_rewards = self.db.query(func.count(RewardModel.id)).scalar() or 0
        active_rewards = (
            self.db.query(func.count(RewardModel.id))
            .filter(RewardModel.status == RewardStatus.ACTIVE.value)
            .scalar()
            or 0
        )
        total_redemptions = self.db.query(func.count(UserRewardModel.id)).scalar() or 0
        used_vouchers = (
            self.db.query(func.count(UserRewardModel.id))
            .filter(UserRewardModel.status == VoucherStatus.USED.value)
            .scalar()
            or 0
        )
        active_vouchers = (
            self.db.query(func.count(UserRewardModel.id))
            .filter(
                and_(
                    UserRewardModel.status == VoucherStatus.ACTIVE.value,
                    UserRewardModel.expires_at >= now,
                )
            )
            .scalar()
            or 0
        )
        expired_vouchers = total_redemptions - used_vouchers - active_vouchers

        return {
            "total_rewards": int(total_rewards),
            "active_rewards": int(active_rewards),
            "total_redemptions": int(total_redemptions),
            "active_vouchers": int(active_vouchers),
            "used_vouchers": int(used_vouchers),
            "expired_vouchers": int(expired_vouchers),
        }

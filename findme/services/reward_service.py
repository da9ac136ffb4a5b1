import random
import string
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from findme.config import Settings, settings as app_settings
from findme.repositories.rewards_repository import RewardsRepository
from findme.services.point_service import PointService
from findme.core.exceptions import (
    HasDependentsError,
    InsufficientPointsError,
    NotFoundError,
    OutOfStockError,
    PersistenceError,
    RewardUnavailableError,
    ValidationError,
    VoucherExpiredError,
    VoucherNotActiveError,
)
from findme.models.rewards import (
    Reward as RewardModel,
    RewardCategory as RewardCategoryModel,
    RewardStatus,
    VoucherStatus,
)
from findme.schemas.pagination import paginate
from findme.schemas.rewards import (
    RewardCatalogResponse,
    RewardCategoryCreateRequest,
    RewardCategoryResponse,
    RewardCategoryUpdateRequest,
    RewardCreateRequest,
    RewardItem,
    RewardStatsResponse,
    RewardUpdateRequest,
    VoucherQrDataResponse,
    VoucherResponse,
)
from findme.utils.timezone_utils import format_datetime, utc_now
import logging

logger = logging.getLogger(__name__)

VOUCHER_SUFFIX_LENGTH = 6
VOUCHER_SUFFIX_ALPHABET = string.ascii_letters + string.digits

# 수정 요청에서 null로 전달되어도 무시하는 필드
NON_NULLABLE_REWARD_FIELDS = (
    "category_id",
    "name",
    "points_required",
    "stock_quantity",
    "validity_days",
    "status",
)
NON_NULLABLE_CATEGORY_FIELDS = ("name",)


class RewardService:
    """리워드 카탈로그 조회, 교환(바우처 발급), 관리자 카탈로그 관리

    잔액 변경은 모두 PointService에 위임합니다.
    """

    def __init__(
        self,
        db: Session,
        point_service: Optional[PointService] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or app_settings
        self.rewards_repo = RewardsRepository(db)
        self.point_service = point_service or PointService(db, settings=self.settings)

    # ------------------------------------------------------------------
    # 카탈로그 조회
    # ------------------------------------------------------------------

    def list_available_rewards(
        self,
        user_id: int,
        category_id: Optional[int] = None,
        redeemable_only: bool = False,
        page: int = 1,
    ) -> RewardCatalogResponse:
        """교환 가능한 리워드 목록 (페이지 단위)

        Args:
            user_id: 사용자 ID (can_redeem 계산용)
            category_id: 카테고리 필터
            redeemable_only: True시 현재 잔액으로 교환 가능한 리워드만
            page: 페이지 번호 (1 미만은 1로 보정)

        Returns:
            RewardCatalogResponse: 등록순 리워드 목록과 페이지 정보
        """
        current_points = self.point_service.get_current_points(user_id)

        items: List[RewardItem] = []
        for reward in self.rewards_repo.get_active_rewards(category_id):
            if not reward.is_available:
                continue
            can_redeem = current_points >= reward.points_required
            if redeemable_only and not can_redeem:
                continue
            items.append(self.rewards_repo.to_reward_item(reward, can_redeem=can_redeem))

        paged = paginate(items, page, self.settings.REWARDS_PAGE_SIZE)
        logger.info(
            f"Retrieved reward catalog for user {user_id}: {paged['total']} items, page {paged['current_page']}"
        )
        return RewardCatalogResponse(
            rewards=paged["items"],
            total=paged["total"],
            per_page=paged["per_page"],
            current_page=paged["current_page"],
            last_page=paged["last_page"],
            has_more_pages=paged["has_more_pages"],
        )

    def get_all_rewards(self, category_id: Optional[int] = None) -> List[RewardItem]:
        """상태와 무관한 전체 리워드 (관리자용, 최신순)"""
        rewards = self.rewards_repo.get_all_rewards(category_id)
        return [self.rewards_repo.to_reward_item(r) for r in rewards]

    def get_reward(self, reward_id: int, user_id: Optional[int] = None) -> RewardItem:
        """리워드 단건 조회

        Args:
            reward_id: 리워드 ID
            user_id: 주어지면 can_redeem을 함께 계산

        Returns:
            RewardItem: 리워드 정보
        """
        reward = self.rewards_repo.get_reward(reward_id)
        if not reward:
            raise NotFoundError(f"Reward not found: {reward_id}")

        can_redeem = None
        if user_id is not None:
            can_redeem = reward.is_available and self.point_service.has_enough_points(
                user_id, reward.points_required
            )
        return self.rewards_repo.to_reward_item(reward, can_redeem=can_redeem)

    # ------------------------------------------------------------------
    # 교환
    # ------------------------------------------------------------------

    def generate_voucher_code(self, prefix: Optional[str] = None) -> str:
        """접두어 + YYYYmmddHHMMSS + 영숫자 6자리 (대문자)"""
        prefix = prefix or self.settings.DEFAULT_VOUCHER_PREFIX
        timestamp = utc_now().strftime("%Y%m%d%H%M%S")
        suffix = "".join(
            random.choices(VOUCHER_SUFFIX_ALPHABET, k=VOUCHER_SUFFIX_LENGTH)
        )
        return f"{prefix}{timestamp}{suffix}".upper()

    def redeem_reward(self, user_id: int, reward_id: int) -> VoucherResponse:
        """리워드 교환 처리

        리워드 행을 잠근 뒤 가용성/재고/잔액을 확인하고, 바우처 발급 -> 포인트 차감 ->
        교환 수량 증가를 하나의 트랜잭션으로 commit 합니다. 어느 단계든 실패하면
        전체가 롤백됩니다.

        Args:
            user_id: 사용자 ID
            reward_id: 리워드 ID

        Returns:
            VoucherResponse: 발급된 바우처
        """
        try:
            reward = self.rewards_repo.get_reward(reward_id, for_update=True)

            if reward is None or reward.status != RewardStatus.ACTIVE.value:
                raise RewardUnavailableError(details={"reward_id": reward_id})

            if reward.is_out_of_stock:
                raise OutOfStockError(
                    details={
                        "reward_id": reward_id,
                        "stock_quantity": reward.stock_quantity,
                        "redeemed_count": reward.redeemed_count,
                    }
                )

            if not self.point_service.has_enough_points(user_id, reward.points_required):
                raise InsufficientPointsError(
                    details={
                        "required": reward.points_required,
                        "available": self.point_service.get_current_points(user_id),
                    }
                )

            redeemed_at = utc_now()
            voucher = self.rewards_repo.create_voucher(
                user_id=user_id,
                reward=reward,
                voucher_code=self.generate_voucher_code(reward.voucher_code_prefix),
                redeemed_at=redeemed_at,
                expires_at=redeemed_at + timedelta(days=reward.validity_days),
            )

            self.point_service.deduct_reward_points(
                user_id=user_id,
                reward_id=reward.id,
                reward_name=reward.name,
                points=reward.points_required,
                commit=False,
            )
            self.rewards_repo.increment_redeemed_count(reward)

            self.db.commit()
        except (
            RewardUnavailableError,
            OutOfStockError,
            InsufficientPointsError,
        ) as e:
            self.db.rollback()
            logger.warning(
                f"Redemption rejected for user {user_id}, reward {reward_id}: {str(e)}"
            )
            raise
        except PersistenceError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.error(
                f"Voucher code collision for user {user_id}, reward {reward_id}: {str(e)}"
            )
            raise PersistenceError("Failed to issue voucher, please try again")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to redeem reward for user {user_id}: {str(e)}")
            raise PersistenceError("Failed to redeem reward")

        logger.info(
            f"User {user_id} redeemed reward {reward_id} for {voucher.points_spent} points (voucher {voucher.voucher_code})"
        )
        return self.rewards_repo.to_voucher_response(voucher)

    # ------------------------------------------------------------------
    # 바우처
    # ------------------------------------------------------------------

    def get_user_rewards(
        self, user_id: int, status: Optional[VoucherStatus] = None
    ) -> List[VoucherResponse]:
        """사용자 바우처 목록 (최근 교환순)"""
        status_value = status.value if isinstance(status, VoucherStatus) else status
        vouchers = self.rewards_repo.get_user_vouchers(user_id, status_value)
        return [self.rewards_repo.to_voucher_response(v) for v in vouchers]

    def mark_voucher_used(
        self, voucher_id: int, user_id: Optional[int] = None
    ) -> VoucherResponse:
        """바우처 사용 처리

        Args:
            voucher_id: 바우처 ID
            user_id: 주어지면 해당 사용자의 바우처인지 확인

        Returns:
            VoucherResponse: 사용 처리된 바우처
        """
        try:
            voucher = self.rewards_repo.get_voucher(voucher_id, for_update=True)
            if voucher is None or (user_id is not None and voucher.user_id != user_id):
                raise NotFoundError(f"Voucher not found: {voucher_id}")
            if voucher.status != VoucherStatus.ACTIVE.value:
                raise VoucherNotActiveError(details={"status": voucher.status})
            if voucher.is_expired:
                raise VoucherExpiredError(
                    details={"expires_at": format_datetime(voucher.expires_at)}
                )

            voucher.status = VoucherStatus.USED.value
            voucher.used_at = utc_now()
            self.db.commit()
        except (NotFoundError, VoucherNotActiveError, VoucherExpiredError) as e:
            self.db.rollback()
            logger.warning(f"Cannot mark voucher {voucher_id} as used: {str(e)}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to mark voucher {voucher_id} as used: {str(e)}")
            raise PersistenceError("Failed to update voucher")

        logger.info(f"Voucher {voucher_id} marked as used")
        return self.rewards_repo.to_voucher_response(voucher)

    def get_voucher_qr_data(self, voucher_id: int, user_id: int) -> VoucherQrDataResponse:
        """QR 렌더러용 바우처 데이터"""
        voucher = self.rewards_repo.get_voucher(voucher_id)
        if voucher is None or voucher.user_id != user_id:
            raise NotFoundError(f"Voucher not found: {voucher_id}")

        return VoucherQrDataResponse(
            qr_code_data=voucher.qr_code_data,
            voucher_code=voucher.voucher_code,
            reward_name=voucher.reward.name if voucher.reward else None,
            expires_at=format_datetime(voucher.expires_at),
        )

    # ------------------------------------------------------------------
    # 관리자 - 카테고리
    # ------------------------------------------------------------------

    def get_categories(self) -> List[RewardCategoryResponse]:
        return self.rewards_repo.get_categories_with_counts()

    def create_category(
        self, request: RewardCategoryCreateRequest
    ) -> RewardCategoryResponse:
        try:
            category = self.rewards_repo.add(
                RewardCategoryModel(**request.model_dump())
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create reward category: {str(e)}")
            raise PersistenceError("Failed to create reward category")

        logger.info(f"Created reward category {category.id}: {category.name}")
        return self.rewards_repo.to_category_response(category)

    def update_category(
        self, category_id: int, request: RewardCategoryUpdateRequest
    ) -> RewardCategoryResponse:
        category = self.rewards_repo.get_category(category_id)
        if not category:
            raise NotFoundError(f"Reward category not found: {category_id}")

        try:
            for field, value in request.model_dump(exclude_unset=True).items():
                if value is None and field in NON_NULLABLE_CATEGORY_FIELDS:
                    continue
                setattr(category, field, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update reward category {category_id}: {str(e)}")
            raise PersistenceError("Failed to update reward category")

        logger.info(f"Updated reward category {category_id}")
        return self.rewards_repo.to_category_response(
            category,
            rewards_count=self.rewards_repo.count_rewards_in_category(category_id),
        )

    def delete_category(self, category_id: int) -> None:
        """카테고리 삭제 (리워드가 하나라도 있으면 거부)"""
        category = self.rewards_repo.get_category(category_id)
        if not category:
            raise NotFoundError(f"Reward category not found: {category_id}")

        rewards_count = self.rewards_repo.count_rewards_in_category(category_id)
        if rewards_count > 0:
            logger.warning(
                f"Refused to delete reward category {category_id} with {rewards_count} rewards"
            )
            raise HasDependentsError(
                "Cannot delete category that has rewards",
                details={"category_id": category_id, "rewards_count": rewards_count},
            )

        try:
            self.db.delete(category)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete reward category {category_id}: {str(e)}")
            raise PersistenceError("Failed to delete reward category")

        logger.info(f"Deleted reward category {category_id}")

    # ------------------------------------------------------------------
    # 관리자 - 리워드
    # ------------------------------------------------------------------

    def _require_category(self, category_id: int) -> RewardCategoryModel:
        category = self.rewards_repo.get_category(category_id)
        if not category:
            raise NotFoundError(f"Reward category not found: {category_id}")
        return category

    def create_reward(self, request: RewardCreateRequest) -> RewardItem:
        """리워드 생성 (카테고리가 존재해야 함)"""
        category = self._require_category(request.category_id)

        data = request.model_dump()
        data["status"] = request.status.value
        if data["validity_days"] is None:
            data["validity_days"] = self.settings.DEFAULT_VOUCHER_VALIDITY_DAYS
        try:
            reward = RewardModel(**data)
            reward.category = category
            reward = self.rewards_repo.add(reward)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create reward: {str(e)}")
            raise PersistenceError("Failed to create reward")

        logger.info(f"Created reward {reward.id}: {reward.name}")
        return self.rewards_repo.to_reward_item(reward)

    def update_reward(self, reward_id: int, request: RewardUpdateRequest) -> RewardItem:
        """리워드 수정 (전달된 필드만 반영)

        유한 재고를 이미 교환된 수량보다 적게 낮출 수 없습니다.
        """
        reward = self.rewards_repo.get_reward(reward_id, for_update=True)
        if not reward:
            raise NotFoundError(f"Reward not found: {reward_id}")

        changes = request.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            try:
                reward.category = self._require_category(changes["category_id"])
            except NotFoundError:
                self.db.rollback()
                raise

        new_stock = changes.get("stock_quantity")
        if new_stock is not None and 0 < new_stock < reward.redeemed_count:
            self.db.rollback()
            raise ValidationError(
                "Stock quantity cannot be lower than the redeemed count",
                details={
                    "stock_quantity": new_stock,
                    "redeemed_count": reward.redeemed_count,
                },
            )

        try:
            for field, value in changes.items():
                if value is None and field in NON_NULLABLE_REWARD_FIELDS:
                    continue
                if isinstance(value, RewardStatus):
                    value = value.value
                setattr(reward, field, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update reward {reward_id}: {str(e)}")
            raise PersistenceError("Failed to update reward")

        logger.info(f"Updated reward {reward_id}: {sorted(changes.keys())}")
        return self.rewards_repo.to_reward_item(reward)

    def delete_reward(self, reward_id: int) -> None:
        """리워드 삭제 (교환 이력이 있으면 거부)"""
        reward = self.rewards_repo.get_reward(reward_id)
        if not reward:
            raise NotFoundError(f"Reward not found: {reward_id}")

        voucher_count = self.rewards_repo.count_vouchers_for_reward(reward_id)
        if voucher_count > 0:
            logger.warning(
                f"Refused to delete reward {reward_id} with {voucher_count} vouchers"
            )
            raise HasDependentsError(
                "Cannot delete reward that has redemption history",
                details={"reward_id": reward_id, "voucher_count": voucher_count},
            )

        try:
            self.db.delete(reward)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete reward {reward_id}: {str(e)}")
            raise PersistenceError("Failed to delete reward")

        logger.info(f"Deleted reward {reward_id}")

    def get_reward_stats(self) -> RewardStatsResponse:
        """관리자 리워드 통계 (바우처는 expires_at 기준 실효 상태로 집계)"""
        return RewardStatsResponse(**self.rewards_repo.get_stats(utc_now()))

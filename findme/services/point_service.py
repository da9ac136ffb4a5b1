from typing import Any, Dict, Optional, Union
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from findme.config import Settings, settings as app_settings
from findme.repositories.points_repository import PointsRepository
from findme.repositories.social_share_repository import SocialShareRepository
from findme.core.exceptions import (
    InsufficientPointsError,
    PersistenceError,
    ValidationError,
)
from findme.models.points import PointAction, TransactionType
from findme.models.social_share import SharePlatform
from findme.schemas.points import (
    PointsBalanceResponse,
    PointsHistoryResponse,
    PointsIntegrityCheckResponse,
    SocialShareResponse,
)
from findme.utils.timezone_utils import utc_now
import logging

logger = logging.getLogger(__name__)


class PointService:
    """포인트 원장(잔액 + 거래 내역)의 유일한 쓰기 경로

    잔액 변경은 모두 award_points / deduct_points / recalculate_user_points를 거치며
    잔액 행을 잠근 상태(SELECT ... FOR UPDATE)에서 읽기-수정-쓰기를 수행합니다.
    commit=False로 호출하면 상위 작업(리워드 교환)의 트랜잭션에 포함됩니다.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or app_settings
        self.points_repo = PointsRepository(db)
        self.share_repo = SocialShareRepository(db)

    def _finish(self, commit: bool) -> None:
        if commit:
            self.db.commit()
        else:
            self.db.flush()

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_current_points(self, user_id: int) -> int:
        """현재 잔액 (잔액 행이 없으면 0, 행을 생성하지 않음)"""
        balance = self.points_repo.get_balance(user_id)
        return balance.current_points if balance else 0

    def get_user_balance(self, user_id: int) -> PointsBalanceResponse:
        """사용자 포인트 잔액 조회

        Args:
            user_id: 사용자 ID

        Returns:
            PointsBalanceResponse: 잔액 정보 (행이 없으면 모두 0)
        """
        balance = self.points_repo.get_balance(user_id)
        return self.points_repo.to_balance_response(user_id, balance)

    def has_enough_points(self, user_id: int, required: int) -> bool:
        """사용자가 required 포인트 이상을 보유했는지 확인"""
        return self.get_current_points(user_id) >= required

    def get_points_history(
        self, user_id: int, limit: Optional[int] = None
    ) -> PointsHistoryResponse:
        """사용자 포인트 거래 내역 조회

        Args:
            user_id: 사용자 ID
            limit: 최대 건수 (1 ~ POINTS_HISTORY_MAX_LIMIT 범위로 보정)

        Returns:
            PointsHistoryResponse: 최신순 거래 내역
        """
        if limit is None:
            limit = self.settings.POINTS_HISTORY_DEFAULT_LIMIT
        limit = max(1, min(limit, self.settings.POINTS_HISTORY_MAX_LIMIT))

        transactions = self.points_repo.get_history(user_id, limit)
        return PointsHistoryResponse(
            current_points=self.get_current_points(user_id),
            entries=[self.points_repo.to_transaction_entry(t) for t in transactions],
            total_count=self.points_repo.count_transactions(user_id),
        )

    # ------------------------------------------------------------------
    # 적립 / 차감
    # ------------------------------------------------------------------

    def award_points(
        self,
        user_id: int,
        points: int,
        action: Union[str, PointAction],
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> PointsBalanceResponse:
        """포인트 적립

        Args:
            user_id: 사용자 ID
            points: 적립할 포인트 (양수)
            action: 거래 사유 태그
            description: 거래 설명
            metadata: 부가 정보
            commit: False면 flush만 수행 (상위 트랜잭션에 포함)

        Returns:
            PointsBalanceResponse: 적립 후 잔액
        """
        if points <= 0:
            raise ValidationError(
                "Points to award must be positive", details={"points": points}
            )
        action_value = action.value if isinstance(action, PointAction) else action

        try:
            balance = self.points_repo.get_or_create_balance_for_update(user_id)
            balance.current_points += points
            balance.total_earned_points += points
            self.points_repo.add_transaction(
                user_id=user_id,
                transaction_type=TransactionType.EARNED,
                points=points,
                action=action_value,
                description=description,
                metadata=metadata,
            )
            self._finish(commit)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to award points for user {user_id}: {str(e)}")
            raise PersistenceError("Failed to award points")

        logger.info(f"Awarded {points} points to user {user_id} ({action_value})")
        return self.points_repo.to_balance_response(user_id, balance)

    def deduct_points(
        self,
        user_id: int,
        points: int,
        action: Union[str, PointAction],
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> PointsBalanceResponse:
        """포인트 차감

        잔액 확인과 차감은 같은 행 잠금 안에서 수행되므로 동시 차감이
        확인 단계를 함께 통과할 수 없습니다.

        Args:
            user_id: 사용자 ID
            points: 차감할 포인트 (양수)
            action: 거래 사유 태그
            description: 거래 설명
            metadata: 부가 정보
            commit: False면 flush만 수행 (상위 트랜잭션에 포함)

        Returns:
            PointsBalanceResponse: 차감 후 잔액
        """
        if points <= 0:
            raise ValidationError(
                "Points to deduct must be positive", details={"points": points}
            )
        action_value = action.value if isinstance(action, PointAction) else action

        try:
            balance = self.points_repo.get_balance(user_id, for_update=True)
            available = balance.current_points if balance else 0
            if balance is None or available < points:
                self.db.rollback()
                logger.warning(
                    f"Insufficient points for user {user_id}: required {points}, available {available}"
                )
                raise InsufficientPointsError(
                    f"Insufficient points. Required: {points}, Available: {available}",
                    details={"required": points, "available": available},
                )

            balance.current_points -= points
            balance.total_spent_points += points
            self.points_repo.add_transaction(
                user_id=user_id,
                transaction_type=TransactionType.SPENT,
                points=points,
                action=action_value,
                description=description,
                metadata=metadata,
            )
            self._finish(commit)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to deduct points for user {user_id}: {str(e)}")
            raise PersistenceError("Failed to deduct points")

        logger.info(f"Deducted {points} points from user {user_id} ({action_value})")
        return self.points_repo.to_balance_response(user_id, balance)

    # ------------------------------------------------------------------
    # 재계산 / 정합성
    # ------------------------------------------------------------------

    def recalculate_user_points(self, user_id: int) -> PointsBalanceResponse:
        """거래 내역 합계로 잔액 행을 덮어쓰기 (멱등)

        Args:
            user_id: 사용자 ID

        Returns:
            PointsBalanceResponse: 재계산된 잔액
        """
        try:
            balance = self.points_repo.get_or_create_balance_for_update(user_id)
            earned, spent = self.points_repo.sum_points_by_type(user_id)
            balance.total_earned_points = earned
            balance.total_spent_points = spent
            balance.current_points = earned - spent
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to recalculate points for user {user_id}: {str(e)}")
            raise PersistenceError("Failed to recalculate points")

        logger.info(
            f"Recalculated points for user {user_id}: earned={earned}, spent={spent}"
        )
        return self.points_repo.to_balance_response(user_id, balance)

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """사용자별 포인트 정합성 검증 (읽기 전용, 복구하지 않음)

        Args:
            user_id: 사용자 ID

        Returns:
            PointsIntegrityCheckResponse: 검증 결과
        """
        balance = self.points_repo.get_balance(user_id)
        earned, spent = self.points_repo.sum_points_by_type(user_id)

        recorded_current = balance.current_points if balance else 0
        recorded_earned = balance.total_earned_points if balance else 0
        recorded_spent = balance.total_spent_points if balance else 0
        calculated_current = earned - spent

        matches = (
            recorded_current == calculated_current
            and recorded_earned == earned
            and recorded_spent == spent
        )
        result = PointsIntegrityCheckResponse(
            status="OK" if matches else "MISMATCH",
            user_id=user_id,
            recorded_current=recorded_current,
            recorded_earned=recorded_earned,
            recorded_spent=recorded_spent,
            calculated_earned=earned,
            calculated_spent=spent,
            calculated_current=calculated_current,
            transaction_count=self.points_repo.count_transactions(user_id),
            verified_at=utc_now().isoformat(),
        )

        if result.status == "MISMATCH":
            logger.warning(f"Points integrity mismatch detected for user {user_id}")
        else:
            logger.info(f"Points integrity verified for user {user_id}")
        return result

    # ------------------------------------------------------------------
    # 도메인 이벤트별 적립
    # ------------------------------------------------------------------

    def award_registration_points(self, user_id: int) -> PointsBalanceResponse:
        """회원가입 보너스"""
        return self.award_points(
            user_id,
            self.settings.REGISTRATION_POINTS,
            PointAction.REGISTRATION,
            "Welcome bonus for joining FindMe",
        )

    def award_missing_report_points(
        self, user_id: int, report_id: int, report_name: str
    ) -> PointsBalanceResponse:
        """실종자 신고 제출"""
        return self.award_points(
            user_id,
            self.settings.MISSING_REPORT_POINTS,
            PointAction.MISSING_REPORT,
            f"Submitted missing person report for {report_name}",
            metadata={"report_id": report_id},
        )

    def award_sighting_report_points(
        self, user_id: int, report_id: int
    ) -> PointsBalanceResponse:
        """목격 제보 승인"""
        return self.award_points(
            user_id,
            self.settings.SIGHTING_REPORT_POINTS,
            PointAction.SIGHTING_REPORT,
            "Sighting report approved",
            metadata={"report_id": report_id},
        )

    def award_community_project_points(
        self, user_id: int, project_id: int, project_title: str, points: int
    ) -> PointsBalanceResponse:
        """커뮤니티 프로젝트 완료 (보상이 없는 프로젝트는 잔액만 반환)"""
        if points <= 0:
            return self.get_user_balance(user_id)
        return self.award_points(
            user_id,
            points,
            PointAction.COMMUNITY_PROJECT,
            f"Completed community project: {project_title}",
            metadata={"project_id": project_id},
        )

    def revert_community_project_points(
        self, user_id: int, project_id: int, project_title: str, points: int
    ) -> PointsBalanceResponse:
        """완료 처리된 프로젝트 상태가 되돌려졌을 때 지급 포인트 회수"""
        if points <= 0:
            return self.get_user_balance(user_id)
        return self.deduct_points(
            user_id,
            points,
            PointAction.PROJECT_STATUS_REVERTED,
            f"Project status reverted: {project_title}",
            metadata={"project_id": project_id},
        )

    def deduct_reward_points(
        self,
        user_id: int,
        reward_id: int,
        reward_name: str,
        points: int,
        commit: bool = True,
    ) -> PointsBalanceResponse:
        """리워드 교환 차감"""
        return self.deduct_points(
            user_id,
            points,
            PointAction.REWARD_REDEMPTION,
            f"Redeemed reward: {reward_name}",
            metadata={"reward_id": reward_id},
            commit=commit,
        )

    def award_social_share_points(
        self,
        user_id: int,
        report_id: int,
        platform: Union[str, SharePlatform],
        share_url: Optional[str] = None,
    ) -> SocialShareResponse:
        """실종 신고 건 SNS 공유 포인트 지급

        (user_id, report_id, platform) 조합당 한 번만 지급합니다. 공유 기록 확인/갱신과
        포인트 적립은 하나의 트랜잭션에서 처리됩니다.

        Args:
            user_id: 사용자 ID
            report_id: 실종 신고 ID
            platform: 공유 플랫폼
            share_url: 공유 URL

        Returns:
            SocialShareResponse: 지급 여부와 현재 잔액
        """
        try:
            platform_value = SharePlatform(platform).value
        except ValueError:
            raise ValidationError(
                f"Unsupported share platform: {platform}",
                details={"platform": str(platform)},
            )

        points = self.settings.SOCIAL_SHARE_POINTS
        try:
            share = self.share_repo.get_share(
                user_id, report_id, platform_value, for_update=True
            )
            if share is not None and share.points_awarded:
                self.db.rollback()
                logger.info(
                    f"Social share already awarded: user {user_id}, report {report_id}, {platform_value}"
                )
                return self._already_shared_response(user_id)

            share = self.share_repo.mark_awarded(
                share, user_id, report_id, platform_value, share_url
            )
            balance = self.award_points(
                user_id,
                points,
                PointAction.SOCIAL_SHARE,
                f"Shared missing person report on {share.platform_name}",
                metadata={
                    "report_id": report_id,
                    "platform": platform_value,
                    "share_id": share.id,
                },
                commit=False,
            )
            self.db.commit()
        except IntegrityError:
            # 동시 요청이 먼저 공유 기록을 만든 경우
            self.db.rollback()
            logger.info(
                f"Concurrent social share detected: user {user_id}, report {report_id}, {platform_value}"
            )
            return self._already_shared_response(user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to award social share points: {str(e)}")
            raise PersistenceError("Failed to award social share points")

        return SocialShareResponse(
            awarded=True,
            points=points,
            current_points=balance.current_points,
            message=f"You earned {points} point(s) for sharing!",
        )

    def _already_shared_response(self, user_id: int) -> SocialShareResponse:
        return SocialShareResponse(
            awarded=False,
            points=0,
            current_points=self.get_current_points(user_id),
            message="Points already awarded for this share",
        )

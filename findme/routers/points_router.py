"""
포인트 API 라우터

사용자용 엔드포인트:
- GET /points/balance: 내 포인트 잔액 조회
- GET /points/history: 내 포인트 거래 내역 (최신순)
- GET /points/affordability: 특정 포인트 지불 가능 여부
- POST /points/social-share: 실종 신고 건 SNS 공유 포인트

관리자용 엔드포인트:
- GET /points/admin/{user_id}/balance: 사용자 잔액 조회
- POST /points/admin/{user_id}/award: 포인트 적립
- POST /points/admin/{user_id}/deduct: 포인트 차감
- POST /points/admin/{user_id}/recalculate: 거래 내역 기준 잔액 재계산
- GET /points/admin/{user_id}/integrity: 정합성 검증

인증 및 권한:
- 모든 엔드포인트는 Bearer 토큰 인증 필요
- 관리자 엔드포인트는 role=admin 필요
"""

from fastapi import APIRouter, Depends, Query, Path

from findme.core.auth_middleware import get_current_active_user, require_admin
from findme.deps import get_point_service
from findme.schemas.user import User as UserSchema
from findme.services.point_service import PointService
from findme.schemas.pagination import PaginationLimits
from findme.schemas.points import (
    AffordabilityResponse,
    PointsAdjustmentRequest,
    PointsBalanceResponse,
    PointsHistoryResponse,
    PointsIntegrityCheckResponse,
    SocialShareRequest,
    SocialShareResponse,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/balance", response_model=PointsBalanceResponse)
def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    """내 포인트 잔액 조회"""
    return point_service.get_user_balance(current_user.id)


@router.get("/history", response_model=PointsHistoryResponse)
def get_my_history(
    limit: int = Query(
        PaginationLimits.POINTS_HISTORY["default"],
        ge=PaginationLimits.POINTS_HISTORY["min"],
        le=PaginationLimits.POINTS_HISTORY["max"],
        description="조회 건수",
    ),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsHistoryResponse:
    """
    내 포인트 거래 내역 조회

    Query Parameters:
        limit: 조회 건수 (1-100, 기본: 50)

    Returns:
        PointsHistoryResponse: 현재 잔액, 최신순 거래 내역, 전체 거래 수
    """
    return point_service.get_points_history(current_user.id, limit=limit)


@router.get("/affordability", response_model=AffordabilityResponse)
def check_affordability(
    required: int = Query(..., ge=0, description="필요 포인트"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> AffordabilityResponse:
    """지불 가능 여부 확인"""
    current_points = point_service.get_current_points(current_user.id)
    return AffordabilityResponse(
        required=required,
        current_points=current_points,
        can_afford=current_points >= required,
    )


@router.post("/social-share", response_model=SocialShareResponse)
def award_social_share(
    request: SocialShareRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> SocialShareResponse:
    """
    실종 신고 건 SNS 공유 포인트

    같은 신고 건을 같은 플랫폼에 다시 공유하면 awarded=false로 응답합니다 (오류 아님).
    """
    return point_service.award_social_share_points(
        user_id=current_user.id,
        report_id=request.report_id,
        platform=request.platform,
        share_url=request.share_url,
    )


# 관리자 전용 엔드포인트
@router.get("/admin/{user_id}/balance", response_model=PointsBalanceResponse)
def admin_get_balance(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    return point_service.get_user_balance(user_id)


@router.post("/admin/{user_id}/award", response_model=PointsBalanceResponse)
def admin_award_points(
    request: PointsAdjustmentRequest,
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    """관리자 포인트 적립"""
    metadata = dict(request.metadata or {})
    metadata["admin_id"] = current_user.id
    return point_service.award_points(
        user_id=user_id,
        points=request.points,
        action=request.action,
        description=request.description,
        metadata=metadata,
    )


@router.post("/admin/{user_id}/deduct", response_model=PointsBalanceResponse)
def admin_deduct_points(
    request: PointsAdjustmentRequest,
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    """관리자 포인트 차감 (잔액 부족 시 400 POINTS_001)"""
    metadata = dict(request.metadata or {})
    metadata["admin_id"] = current_user.id
    return point_service.deduct_points(
        user_id=user_id,
        points=request.points,
        action=request.action,
        description=request.description,
        metadata=metadata,
    )


@router.post("/admin/{user_id}/recalculate", response_model=PointsBalanceResponse)
def admin_recalculate_points(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    """거래 내역 합계로 잔액 재계산"""
    logger.info(f"Admin {current_user.id} recalculating points for user {user_id}")
    return point_service.recalculate_user_points(user_id)


@router.get(
    "/admin/{user_id}/integrity", response_model=PointsIntegrityCheckResponse
)
def admin_verify_integrity(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_user_integrity(user_id)

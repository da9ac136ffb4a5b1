"""
리워드 API 라우터

사용자용 엔드포인트:
- GET /rewards/catalog: 교환 가능한 리워드 목록 (페이지 단위)
- GET /rewards/categories: 카테고리 목록
- GET /rewards/catalog/{reward_id}: 리워드 상세
- POST /rewards/redeem: 리워드 교환 (바우처 발급)
- GET /rewards/my-vouchers: 내 바우처 목록
- POST /rewards/my-vouchers/{voucher_id}/use: 바우처 사용 처리
- GET /rewards/my-vouchers/{voucher_id}/qr: QR 렌더링용 데이터

관리자용 엔드포인트:
- GET/POST /rewards/admin/items, PUT/DELETE /rewards/admin/items/{reward_id}
- POST /rewards/admin/categories, PUT/DELETE /rewards/admin/categories/{category_id}
- GET /rewards/admin/stats
"""

from fastapi import APIRouter, Depends, Query, Path
from typing import List, Optional

from findme.core.auth_middleware import get_current_active_user, require_admin
from findme.deps import get_reward_service
from findme.models.rewards import VoucherStatus
from findme.schemas.user import User as UserSchema
from findme.services.reward_service import RewardService
from findme.schemas.pagination import PaginationLimits
from findme.schemas.rewards import (
    DeleteResultResponse,
    RewardCatalogResponse,
    RewardCategoryCreateRequest,
    RewardCategoryResponse,
    RewardCategoryUpdateRequest,
    RewardCreateRequest,
    RewardItem,
    RewardRedemptionRequest,
    RewardRedemptionResponse,
    RewardStatsResponse,
    RewardUpdateRequest,
    VoucherQrDataResponse,
    VoucherResponse,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/catalog", response_model=RewardCatalogResponse)
def get_reward_catalog(
    category_id: Optional[int] = Query(None, description="카테고리 필터"),
    redeemable_only: bool = Query(False, description="현재 잔액으로 교환 가능한 리워드만"),
    page: int = Query(
        PaginationLimits.REWARDS_CATALOG_PAGE["default"], description="페이지 번호"
    ),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardCatalogResponse:
    """리워드 카탈로그 조회

    활성 상태이고 재고가 있는 리워드를 등록순으로 6개씩 반환합니다.
    """
    return reward_service.list_available_rewards(
        user_id=current_user.id,
        category_id=category_id,
        redeemable_only=redeemable_only,
        page=page,
    )


@router.get("/categories", response_model=List[RewardCategoryResponse])
def get_categories(
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> List[RewardCategoryResponse]:
    return reward_service.get_categories()


@router.get("/catalog/{reward_id}", response_model=RewardItem)
def get_reward(
    reward_id: int = Path(..., gt=0, description="리워드 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardItem:
    return reward_service.get_reward(reward_id, user_id=current_user.id)


@router.post("/redeem", response_model=RewardRedemptionResponse)
def redeem_reward(
    request: RewardRedemptionRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardRedemptionResponse:
    """리워드 교환

    실패 시 POINTS_001 / REWARD_001 / REWARD_002 오류 코드로 응답하며
    바우처, 잔액, 교환 수량은 변경되지 않습니다.
    """
    voucher = reward_service.redeem_reward(current_user.id, request.reward_id)
    current_points = reward_service.point_service.get_current_points(current_user.id)
    return RewardRedemptionResponse(
        success=True,
        message=f"Successfully redeemed {voucher.reward_name}",
        voucher=voucher,
        current_points=current_points,
    )


@router.get("/my-vouchers", response_model=List[VoucherResponse])
def get_my_vouchers(
    status: Optional[VoucherStatus] = Query(None, description="상태 필터"),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> List[VoucherResponse]:
    return reward_service.get_user_rewards(current_user.id, status=status)


@router.post("/my-vouchers/{voucher_id}/use", response_model=VoucherResponse)
def use_my_voucher(
    voucher_id: int = Path(..., gt=0, description="바우처 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> VoucherResponse:
    return reward_service.mark_voucher_used(voucher_id, user_id=current_user.id)


@router.get("/my-vouchers/{voucher_id}/qr", response_model=VoucherQrDataResponse)
def get_my_voucher_qr(
    voucher_id: int = Path(..., gt=0, description="바우처 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    reward_service: RewardService = Depends(get_reward_service),
) -> VoucherQrDataResponse:
    return reward_service.get_voucher_qr_data(voucher_id, current_user.id)


# 관리자 전용 엔드포인트
@router.get("/admin/items", response_model=List[RewardItem])
def admin_list_rewards(
    category_id: Optional[int] = Query(None, description="카테고리 필터"),
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> List[RewardItem]:
    return reward_service.get_all_rewards(category_id=category_id)


@router.post("/admin/items", response_model=RewardItem, status_code=201)
def admin_create_reward(
    request: RewardCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardItem:
    return reward_service.create_reward(request)


@router.put("/admin/items/{reward_id}", response_model=RewardItem)
def admin_update_reward(
    request: RewardUpdateRequest,
    reward_id: int = Path(..., gt=0, description="리워드 ID"),
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardItem:
    return reward_service.update_reward(reward_id, request)


@router.delete("/admin/items/{reward_id}", response_model=DeleteResultResponse)
def admin_delete_reward(
    reward_id: int = Path(..., gt=0, description="리워드 ID"),
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> DeleteResultResponse:
    """리워드 삭제 (교환 이력이 있으면 409 CONFLICT_002)"""
    reward_service.delete_reward(reward_id)
    return DeleteResultResponse(success=True, message=f"Reward {reward_id} deleted")


@router.post(
    "/admin/categories", response_model=RewardCategoryResponse, status_code=201
)
def admin_create_category(
    request: RewardCategoryCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardCategoryResponse:
    return reward_service.create_category(request)


@router.put("/admin/categories/{category_id}", response_model=RewardCategoryResponse)
def admin_update_category(
    request: RewardCategoryUpdateRequest,
    category_id: int = Path(..., gt=0, description="카테고리 ID"),
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardCategoryResponse:
    return reward_service.update_category(category_id, request)


@router.delete(
    "/admin/categories/{category_id}", response_model=DeleteResultResponse
)
def admin_delete_category(
    category_id: int = Path(..., gt=0, description="카테고리 ID"),
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> DeleteResultResponse:
    """카테고리 삭제 (리워드가 있으면 409 CONFLICT_002)"""
    reward_service.delete_category(category_id)
    return DeleteResultResponse(
        success=True, message=f"Reward category {category_id} deleted"
    )


@router.get("/admin/stats", response_model=RewardStatsResponse)
def admin_get_stats(
    current_user: UserSchema = Depends(require_admin),
    reward_service: RewardService = Depends(get_reward_service),
) -> RewardStatsResponse:
    return reward_service.get_reward_stats()

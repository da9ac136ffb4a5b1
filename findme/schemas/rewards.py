from pydantic import BaseModel, Field
from typing import List, Optional

from findme.models.rewards import RewardStatus, VoucherStatus


class RewardCategoryResponse(BaseModel):
    """리워드 카테고리"""

    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    rewards_count: int = Field(0, description="카테고리 내 리워드 수")

    class Config:
        from_attributes = True


class RewardCategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="카테고리명")
    description: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=255, description="아이콘 클래스 또는 이미지 경로")


class RewardCategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=255)


class RewardItem(BaseModel):
    """리워드 아이템"""

    id: int = Field(..., description="리워드 ID")
    category_id: int = Field(..., description="카테고리 ID")
    category_name: Optional[str] = Field(None, description="카테고리명")
    name: str = Field(..., description="리워드명")
    description: Optional[str] = Field(None, description="리워드 설명")
    points_required: int = Field(..., description="필요 포인트")
    stock_quantity: int = Field(..., description="재고 수량 (0 = 무제한)")
    redeemed_count: int = Field(..., description="교환된 수량")
    remaining_stock: Optional[int] = Field(None, description="남은 재고 (무제한이면 null)")
    image_path: Optional[str] = Field(None, description="이미지 경로")
    voucher_code_prefix: Optional[str] = Field(None, description="바우처 코드 접두어")
    validity_days: int = Field(..., description="바우처 유효 기간 (일)")
    status: RewardStatus = Field(..., description="상태")
    is_available: bool = Field(..., description="교환 가능 여부 (활성 + 재고)")
    can_redeem: Optional[bool] = Field(None, description="현재 사용자의 포인트로 교환 가능 여부")
    created_at: Optional[str] = None


class RewardCatalogResponse(BaseModel):
    """리워드 카탈로그 응답 (페이지 단위)"""

    rewards: List[RewardItem] = Field(..., description="리워드 목록")
    total: int = Field(..., description="필터 적용 후 전체 수")
    per_page: int
    current_page: int
    last_page: int
    has_more_pages: bool


class RewardCreateRequest(BaseModel):
    """관리자용 리워드 생성 요청"""

    category_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=200, description="리워드명")
    description: Optional[str] = Field(None, max_length=2000)
    points_required: int = Field(..., gt=0, description="필요 포인트")
    stock_quantity: int = Field(0, ge=0, description="재고 (0 = 무제한)")
    image_path: Optional[str] = Field(None, max_length=255)
    voucher_code_prefix: Optional[str] = Field(None, max_length=20)
    validity_days: Optional[int] = Field(
        None, gt=0, description="바우처 유효 기간 (일), 미지정시 기본값 사용"
    )
    status: RewardStatus = RewardStatus.ACTIVE


class RewardUpdateRequest(BaseModel):
    """관리자용 리워드 수정 요청 (전달된 필드만 반영)"""

    category_id: Optional[int] = Field(None, gt=0)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    points_required: Optional[int] = Field(None, gt=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    image_path: Optional[str] = Field(None, max_length=255)
    voucher_code_prefix: Optional[str] = Field(None, max_length=20)
    validity_days: Optional[int] = Field(None, gt=0)
    status: Optional[RewardStatus] = None


class RewardRedemptionRequest(BaseModel):
    """리워드 교환 요청"""

    reward_id: int = Field(..., gt=0, description="교환할 리워드 ID")


class VoucherResponse(BaseModel):
    """교환된 바우처"""

    id: int
    user_id: int
    reward_id: int
    reward_name: Optional[str] = None
    voucher_code: str
    points_spent: int
    redeemed_at: str
    expires_at: str
    status: VoucherStatus
    used_at: Optional[str] = None
    is_expired: bool
    is_active: bool
    days_until_expiry: int


class RewardRedemptionResponse(BaseModel):
    """리워드 교환 응답"""

    success: bool = Field(..., description="교환 성공 여부")
    message: str = Field(..., description="응답 메시지")
    voucher: VoucherResponse
    current_points: int = Field(..., description="교환 후 잔액")


class VoucherQrDataResponse(BaseModel):
    """QR 코드 렌더링용 데이터"""

    qr_code_data: str = Field(..., description="QR에 인코딩할 JSON 문자열")
    voucher_code: str
    reward_name: Optional[str] = None
    expires_at: str


class RewardStatsResponse(BaseModel):
    """관리자 리워드 통계"""

    total_rewards: int
    active_rewards: int
    total_redemptions: int
    active_vouchers: int
    used_vouchers: int
    expired_vouchers: int


class DeleteResultResponse(BaseModel):
    success: bool
    message: str

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from findme.models.social_share import SharePlatform


class PointsBalanceResponse(BaseModel):
    """포인트 잔액 응답"""

    user_id: int = Field(..., description="사용자 ID")
    current_points: int = Field(0, description="현재 포인트 잔액")
    total_earned_points: int = Field(0, description="누적 적립 포인트")
    total_spent_points: int = Field(0, description="누적 사용 포인트")

    class Config:
        from_attributes = True


class PointTransactionEntry(BaseModel):
    """포인트 거래 내역 항목"""

    id: int = Field(..., description="거래 ID")
    type: str = Field(..., description="거래 유형 (earned, spent)")
    points: int = Field(..., description="포인트 (항상 양수)")
    formatted_points: str = Field(..., description="표시용 포인트 (+10, -50)")
    action: str = Field(..., description="거래 사유 태그")
    description: str = Field(..., description="거래 설명")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="부가 정보")
    created_at: Optional[str] = Field(None, description="생성 시간")


class PointsHistoryResponse(BaseModel):
    """포인트 거래 내역 조회 응답"""

    current_points: int = Field(..., description="현재 잔액")
    entries: List[PointTransactionEntry] = Field(..., description="거래 내역 (최신순)")
    total_count: int = Field(..., description="전체 거래 수")


class PointsAdjustmentRequest(BaseModel):
    """관리자 포인트 적립/차감 요청"""

    points: int = Field(..., gt=0, description="포인트 (양수)")
    description: str = Field(..., min_length=1, max_length=255, description="사유")
    action: str = Field("admin_adjustment", min_length=1, max_length=50, description="거래 사유 태그")
    metadata: Optional[Dict[str, Any]] = Field(None, description="부가 정보")


class SocialShareRequest(BaseModel):
    """SNS 공유 포인트 요청"""

    report_id: int = Field(..., gt=0, description="실종 신고 ID")
    platform: SharePlatform = Field(..., description="공유 플랫폼")
    share_url: Optional[str] = Field(None, max_length=2048, description="공유 URL")


class SocialShareResponse(BaseModel):
    """SNS 공유 포인트 응답"""

    awarded: bool = Field(..., description="이번 요청으로 포인트가 지급되었는지 여부")
    points: int = Field(..., description="지급된 포인트")
    current_points: int = Field(..., description="현재 잔액")
    message: str = Field(..., description="응답 메시지")


class AffordabilityResponse(BaseModel):
    required: int
    current_points: int
    can_afford: bool


class PointsIntegrityCheckResponse(BaseModel):
    """포인트 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    user_id: int = Field(..., description="사용자 ID")
    recorded_current: int = Field(..., description="잔액 테이블의 현재 포인트")
    recorded_earned: int = Field(..., description="잔액 테이블의 누적 적립")
    recorded_spent: int = Field(..., description="잔액 테이블의 누적 사용")
    calculated_earned: int = Field(..., description="거래 내역 기준 적립 합계")
    calculated_spent: int = Field(..., description="거래 내역 기준 사용 합계")
    calculated_current: int = Field(..., description="거래 내역 기준 잔액")
    transaction_count: int = Field(..., description="거래 수")
    verified_at: str = Field(..., description="검증 시간")

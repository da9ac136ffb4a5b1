"""
포인트 리포지토리 - 잔액/거래 내역 데이터베이스 접근

이 파일은 포인트 원장의 저장소 계층을 담당합니다:
1. 잔액 행 조회 및 행 잠금 (SELECT ... FOR UPDATE)
2. 잔액 행 지연 생성 (동시 생성 시 유니크 제약으로 1행 보장)
3. 거래 내역 추가 및 조회
4. 거래 내역 합계 계산 (재계산/정합성 검증용)

commit은 하지 않습니다. 트랜잭션 경계는 PointService가 결정합니다.
"""

from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError

from findme.models.points import (
    PointTransaction as PointTransactionModel,
    TransactionType,
    UserPointsBalance as UserPointsBalanceModel,
)
from findme.schemas.points import PointsBalanceResponse, PointTransactionEntry
from findme.repositories.base import BaseRepository
from findme.utils.timezone_utils import format_datetime


class PointsRepository(BaseRepository[UserPointsBalanceModel, PointsBalanceResponse]):
    """
    포인트 리포지토리 - 잔액(user_points)과 거래 내역(point_transactions) 처리

    주요 기능:
    1. 원자성 - 잔액 행을 잠근 상태에서 읽기-수정-쓰기
    2. 감사 추적 - 모든 포인트 변동을 거래 내역으로 기록
    3. 재계산 - 거래 내역 합계로 잔액 캐시 복구
    """

    def __init__(self, db: Session):
        super().__init__(UserPointsBalanceModel, PointsBalanceResponse, db)

    def to_balance_response(
        self, user_id: int, balance: Optional[UserPointsBalanceModel]
    ) -> PointsBalanceResponse:
        """잔액 행을 응답 스키마로 변환 (행이 없으면 0으로 채움)"""
        if balance is None:
            return PointsBalanceResponse(user_id=user_id)
        return self._to_schema(balance)

    def to_transaction_entry(
        self, model_instance: PointTransactionModel
    ) -> PointTransactionEntry:
        """PointTransaction 모델을 응답 스키마로 변환"""
        return PointTransactionEntry(
            id=model_instance.id,
            type=model_instance.type,
            points=model_instance.points,
            formatted_points=model_instance.formatted_points,
            action=model_instance.action,
            description=model_instance.description,
            metadata=model_instance.meta or {},
            created_at=format_datetime(model_instance.created_at),
        )

    def get_balance(
        self, user_id: int, for_update: bool = False
    ) -> Optional[UserPointsBalanceModel]:
        """사용자 잔액 행 조회 (없으면 None, 생성하지 않음)"""
        query = self.db.query(self.model_class).filter(
            self.model_class.user_id == user_id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_or_create_balance_for_update(
        self, user_id: int
    ) -> UserPointsBalanceModel:
        """
        잔액 행을 잠근 상태로 조회하고, 없으면 0으로 생성

        생성은 SAVEPOINT 안에서 수행합니다. 동시 요청이 먼저 행을 만들어
        user_id 유니크 제약에 걸리면 SAVEPOINT만 롤백하고 다시 잠금 조회합니다.
        """
        balance = self.get_balance(user_id, for_update=True)
        if balance is not None:
            return balance

        try:
            with self.db.begin_nested():
                balance = self.model_class(
                    user_id=user_id,
                    current_points=0,
                    total_earned_points=0,
                    total_spent_points=0,
                )
                self.db.add(balance)
                self.db.flush()
        except IntegrityError:
            balance = self.get_balance(user_id, for_update=True)
            if balance is None:
                raise

        return balance

    def add_transaction(
        self,
        user_id: int,
        transaction_type: TransactionType,
        points: int,
        action: str,
        description: str,
        metadata: Optional[dict] = None,
    ) -> PointTransactionModel:
        """거래 내역 추가 (flush만 수행)"""
        transaction = PointTransactionModel(
            user_id=user_id,
            type=transaction_type.value,
            points=points,
            action=action,
            description=description,
            meta=metadata or {},
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def get_history(self, user_id: int, limit: int) -> List[PointTransactionModel]:
        """사용자 거래 내역 조회 (최신순)"""
        return (
            self.db.query(PointTransactionModel)
            .filter(PointTransactionModel.user_id == user_id)
            .order_by(
                desc(PointTransactionModel.created_at), desc(PointTransactionModel.id)
            )
            .limit(limit)
            .all()
        )

    def count_transactions(self, user_id: int) -> int:
        return (
            self.db.query(func.count(PointTransactionModel.id))
            .filter(PointTransactionModel.user_id == user_id)
            .scalar()
            or 0
        )

    def sum_points_by_type(self, user_id: int) -> Tuple[int, int]:
        """
        거래 내역 기준 (적립 합계, 사용 합계) 계산

        Returns:
            Tuple[int, int]: (total_earned, total_spent)
        """
        rows = (
            self.db.query(
                PointTransactionModel.type, func.sum(PointTransactionModel.points)
            )
            .filter(PointTransactionModel.user_id == user_id)
            .group_by(PointTransactionModel.type)
            .all()
        )
        totals = {row[0]: int(row[1] or 0) for row in rows}
        return (
            totals.get(TransactionType.EARNED.value, 0),
            totals.get(TransactionType.SPENT.value, 0),
        )

    def list_user_ids_with_activity(self) -> List[int]:
        """잔액 행 또는 거래 내역이 있는 모든 사용자 ID (일괄 재계산용)"""
        balance_ids = {row[0] for row in self.db.query(self.model_class.user_id).all()}
        transaction_ids = {
            row[0]
            for row in self.db.query(PointTransactionModel.user_id).distinct().all()
        }
        return sorted(balance_ids | transaction_ids)

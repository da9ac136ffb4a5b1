"""
포인트 잔액 일괄 재계산 스크립트
모든 사용자의 잔액을 거래 내역 합계로 다시 계산하고 차이가 있었던 사용자를 출력
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from findme.containers import Container
from findme.logging_config import setup_logging


def recalculate_all(container: Container) -> list:
    """전체 사용자 재계산

    Returns:
        list: 재계산 전 정합성이 맞지 않았던 사용자 ID 목록
    """
    point_service = container.services.point_service()
    user_ids = point_service.points_repo.list_user_ids_with_activity()

    drifted = []
    for user_id in user_ids:
        check = point_service.verify_user_integrity(user_id)
        if check.status != "OK":
            drifted.append(user_id)
            print(
                f"   user {user_id}: recorded {check.recorded_current} -> calculated {check.calculated_current}"
            )
        point_service.recalculate_user_points(user_id)

    print(f"Recalculated {len(user_ids)} balances, {len(drifted)} had drifted")
    return drifted


if __name__ == "__main__":
    container = Container()
    settings = container.config.config()
    setup_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)

    container.init_resources()
    try:
        recalculate_all(container)
    finally:
        container.shutdown_resources()

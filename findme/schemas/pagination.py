import math


# 엔드포인트별 페이지네이션 제한
class PaginationLimits:
    POINTS_HISTORY = {"min": 1, "max": 100, "default": 50}
    REWARDS_CATALOG_PAGE = {"min": 1, "default": 1}


def paginate(items: list, page: int, per_page: int) -> dict:
    """메모리 내 목록을 페이지 단위로 자르고 메타 정보를 계산"""
    page = max(page, 1)
    total = len(items)
    last_page = math.ceil(total / per_page) if per_page > 0 else 0
    offset = (page - 1) * per_page
    return {
        "items": items[offset : offset + per_page],
        "total": total,
        "per_page": per_page,
        "current_page": page,
        "last_page": last_page,
        "has_more_pages": page < last_page,
    }

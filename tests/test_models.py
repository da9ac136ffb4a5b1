import json
from datetime import datetime, timedelta, timezone

from findme.models.points import PointTransaction
from findme.models.rewards import Reward, RewardStatus, UserReward, VoucherStatus
from findme.models.user import UserRole
from findme.schemas.pagination import paginate
from findme.utils.timezone_utils import ensure_utc, format_datetime


class TestRewardAvailability:
    """리워드 가용성 계산 테스트"""

    def test_unlimited_stock(self):
        reward = Reward(status="active", stock_quantity=0, redeemed_count=500)

        assert reward.is_available is True
        assert reward.remaining_stock is None

    def test_finite_stock(self):
        reward = Reward(status="active", stock_quantity=3, redeemed_count=2)

        assert reward.is_available is True
        assert reward.remaining_stock == 1

        reward.redeemed_count = 3
        assert reward.is_out_of_stock is True
        assert reward.is_available is False

    def test_inactive(self):
        reward = Reward(status=RewardStatus.INACTIVE.value, stock_quantity=0, redeemed_count=0)

        assert reward.is_available is False


class TestVoucherDerivedState:
    def _voucher(self, expires_in: timedelta, status=VoucherStatus.ACTIVE):
        now = datetime.now(timezone.utc)
        return UserReward(
            voucher_code="FINDME20250101000000ABCDEF",
            points_spent=50,
            redeemed_at=now,
            expires_at=now + expires_in,
            status=status.value,
        )

    def test_active_voucher(self):
        voucher = self._voucher(timedelta(days=10, hours=1))

        assert voucher.is_expired is False
        assert voucher.is_active is True
        assert voucher.days_until_expiry == 10

    def test_expiry_is_independent_of_status(self):
        voucher = self._voucher(timedelta(seconds=-1), status=VoucherStatus.USED)

        assert voucher.is_expired is True
        assert voucher.is_active is False
        assert voucher.days_until_expiry == 0

    def test_naive_expiry_is_treated_as_utc(self):
        voucher = self._voucher(timedelta(days=1))
        voucher.expires_at = voucher.expires_at.replace(tzinfo=None)

        assert voucher.is_expired is False

    def test_qr_payload_without_reward(self):
        voucher = self._voucher(timedelta(days=1))

        payload = json.loads(voucher.qr_code_data)

        assert payload["voucher_code"] == "FINDME20250101000000ABCDEF"
        assert payload["reward_name"] is None


def test_formatted_points():
    assert PointTransaction(type="earned", points=10).formatted_points == "+10"
    assert PointTransaction(type="spent", points=50).formatted_points == "-50"


def test_user_role_is_admin():
    assert UserRole.is_admin("admin") is True
    assert UserRole.is_admin(UserRole.VOLUNTEER) is False


def test_timezone_helpers():
    naive = datetime(2025, 1, 25, 9, 30, 0)

    assert ensure_utc(naive).tzinfo == timezone.utc
    assert format_datetime(naive) == "2025-01-25 09:30:00"
    assert format_datetime(None) is None


def test_paginate():
    result = paginate(list(range(13)), page=3, per_page=6)

    assert result["items"] == [12]
    assert result["last_page"] == 3
    assert result["has_more_pages"] is False

    empty = paginate([], page=1, per_page=6)
    assert empty["last_page"] == 0
    assert empty["items"] == []

import json
import re
import pytest
from datetime import timedelta
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from findme.config import Settings
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
from findme.models.points import PointTransaction
from findme.models.rewards import Reward, RewardStatus, UserReward, VoucherStatus
from findme.schemas.rewards import (
    RewardCategoryCreateRequest,
    RewardCategoryUpdateRequest,
    RewardCreateRequest,
    RewardUpdateRequest,
)
from findme.services.reward_service import RewardService
from findme.utils.timezone_utils import ensure_utc, utc_now


def _fund(point_service, user_id, points):
    point_service.award_points(user_id, points, "admin_adjustment", "Test funding")


def _reload_reward(db_session, reward_id):
    db_session.expire_all()
    return db_session.get(Reward, reward_id)


class TestRedeemReward:
    """리워드 교환 테스트"""

    def test_redeem_success(self, reward_service, point_service, db_session, user, make_reward):
        """75포인트 사용자가 50포인트 리워드 교환"""
        # Given
        _fund(point_service, user.id, 75)
        reward = make_reward(points_required=50, stock_quantity=100)

        # When
        voucher = reward_service.redeem_reward(user.id, reward.id)

        # Then
        balance = point_service.get_user_balance(user.id)
        assert balance.current_points == 25
        assert balance.total_spent_points == 50
        assert _reload_reward(db_session, reward.id).redeemed_count == 1

        assert voucher.points_spent == 50
        assert voucher.status == VoucherStatus.ACTIVE
        assert voucher.is_active is True
        assert voucher.reward_name == "Coffee Voucher"

        stored = db_session.query(UserReward).one()
        assert ensure_utc(stored.expires_at) - ensure_utc(stored.redeemed_at) == timedelta(days=30)

        spent = (
            db_session.query(PointTransaction)
            .filter(PointTransaction.type == "spent")
            .one()
        )
        assert spent.action == "reward_redemption"
        assert spent.meta == {"reward_id": reward.id}

    def test_second_redeem_fails_with_insufficient_points(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        # Given
        _fund(point_service, user.id, 75)
        first = make_reward(points_required=50, name="Coffee")
        second = make_reward(points_required=50, name="Movie")
        reward_service.redeem_reward(user.id, first.id)

        # When
        with pytest.raises(InsufficientPointsError):
            reward_service.redeem_reward(user.id, second.id)

        # Then
        assert db_session.query(UserReward).count() == 1
        assert _reload_reward(db_session, second.id).redeemed_count == 0
        assert point_service.get_current_points(user.id) == 25

    def test_sold_out_reward_fails_regardless_of_balance(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        # Given
        _fund(point_service, user.id, 1000)
        reward = make_reward(stock_quantity=1, redeemed_count=1)

        # When
        with pytest.raises(OutOfStockError) as exc_info:
            reward_service.redeem_reward(user.id, reward.id)

        # Then
        assert exc_info.value.error_code == "REWARD_002"
        assert db_session.query(UserReward).count() == 0
        assert point_service.get_current_points(user.id) == 1000

    def test_sold_out_reward_with_empty_balance(self, reward_service, user, make_reward):
        reward = make_reward(stock_quantity=1, redeemed_count=1)

        with pytest.raises(OutOfStockError):
            reward_service.redeem_reward(user.id, reward.id)

    def test_inactive_reward_is_unavailable(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        _fund(point_service, user.id, 100)
        reward = make_reward(status=RewardStatus.INACTIVE)

        with pytest.raises(RewardUnavailableError):
            reward_service.redeem_reward(user.id, reward.id)

        assert db_session.query(UserReward).count() == 0
        assert point_service.get_current_points(user.id) == 100

    def test_missing_reward_is_unavailable(self, reward_service, user):
        with pytest.raises(RewardUnavailableError):
            reward_service.redeem_reward(user.id, 999)

    def test_stock_ceiling(self, reward_service, point_service, make_user, make_reward):
        """재고 2개 리워드는 두 번만 교환 가능"""
        # Given
        reward = make_reward(points_required=10, stock_quantity=2)
        users = [make_user() for _ in range(3)]
        for u in users:
            _fund(point_service, u.id, 10)

        # When
        reward_service.redeem_reward(users[0].id, reward.id)
        reward_service.redeem_reward(users[1].id, reward.id)

        # Then
        with pytest.raises(OutOfStockError):
            reward_service.redeem_reward(users[2].id, reward.id)
        assert point_service.get_current_points(users[2].id) == 10

    def test_unlimited_stock(self, reward_service, point_service, user, make_reward):
        _fund(point_service, user.id, 30)
        reward = make_reward(points_required=10, stock_quantity=0)

        for _ in range(3):
            reward_service.redeem_reward(user.id, reward.id)

        assert len(reward_service.get_user_rewards(user.id)) == 3

    def test_failure_after_deduction_rolls_back_everything(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        """차감 이후 단계 실패 시 바우처/차감/교환 수량 모두 롤백"""
        # Given
        _fund(point_service, user.id, 75)
        reward = make_reward(points_required=50)

        # When
        with patch.object(
            reward_service.rewards_repo,
            "increment_redeemed_count",
            side_effect=OperationalError("UPDATE", {}, Exception("lock timeout")),
        ):
            with pytest.raises(PersistenceError):
                reward_service.redeem_reward(user.id, reward.id)

        # Then
        assert db_session.query(UserReward).count() == 0
        assert _reload_reward(db_session, reward.id).redeemed_count == 0
        balance = point_service.get_user_balance(user.id)
        assert balance.current_points == 75
        assert balance.total_spent_points == 0

    def test_concurrent_deduction_undoes_voucher(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        """사전 확인을 통과했지만 차감 시점에 잔액이 부족한 경우"""
        # Given
        _fund(point_service, user.id, 10)
        reward = make_reward(points_required=50)

        # When
        with patch.object(point_service, "has_enough_points", return_value=True):
            with pytest.raises(InsufficientPointsError):
                reward_service.redeem_reward(user.id, reward.id)

        # Then
        assert db_session.query(UserReward).count() == 0
        assert _reload_reward(db_session, reward.id).redeemed_count == 0

    def test_voucher_code_collision_is_persistence_error(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        # Given
        _fund(point_service, user.id, 100)
        reward = make_reward(points_required=10)

        # When
        with patch.object(reward_service, "generate_voucher_code", return_value="FINDMEDUPLICATE"):
            reward_service.redeem_reward(user.id, reward.id)
            with pytest.raises(PersistenceError):
                reward_service.redeem_reward(user.id, reward.id)

        # Then
        assert db_session.query(UserReward).count() == 1
        assert point_service.get_current_points(user.id) == 90


class TestVoucherCode:
    def test_default_prefix_format(self, reward_service):
        code = reward_service.generate_voucher_code()

        assert re.fullmatch(r"FINDME\d{14}[A-Z0-9]{6}", code)

    def test_reward_prefix_is_uppercased(self, reward_service):
        code = reward_service.generate_voucher_code("grab")

        assert re.fullmatch(r"GRAB\d{14}[A-Z0-9]{6}", code)

    def test_redeemed_voucher_uses_reward_prefix(
        self, reward_service, point_service, user, make_reward
    ):
        _fund(point_service, user.id, 50)
        reward = make_reward(voucher_code_prefix="SHOPEE")

        voucher = reward_service.redeem_reward(user.id, reward.id)

        assert voucher.voucher_code.startswith("SHOPEE")


class TestCatalog:
    """카탈로그 조회 테스트"""

    def test_pagination(self, reward_service, user, make_reward):
        # Given
        for i in range(8):
            make_reward(name=f"Reward {i}")

        # When
        page1 = reward_service.list_available_rewards(user.id, page=1)
        page2 = reward_service.list_available_rewards(user.id, page=2)

        # Then
        assert page1.total == 8
        assert page1.per_page == 6
        assert page1.last_page == 2
        assert page1.has_more_pages is True
        assert [r.name for r in page1.rewards] == [f"Reward {i}" for i in range(6)]
        assert [r.name for r in page2.rewards] == ["Reward 6", "Reward 7"]
        assert page2.has_more_pages is False

    def test_page_below_one_is_clamped(self, reward_service, user, make_reward):
        make_reward()

        result = reward_service.list_available_rewards(user.id, page=0)

        assert result.current_page == 1
        assert len(result.rewards) == 1

    def test_unavailable_rewards_are_hidden(self, reward_service, user, make_reward):
        make_reward(name="Active")
        make_reward(name="Inactive", status=RewardStatus.INACTIVE)
        make_reward(name="Sold out", stock_quantity=1, redeemed_count=1)

        result = reward_service.list_available_rewards(user.id)

        assert [r.name for r in result.rewards] == ["Active"]

    def test_redeemable_only(self, reward_service, point_service, user, make_reward):
        # Given
        _fund(point_service, user.id, 60)
        make_reward(name="Cheap", points_required=50)
        make_reward(name="Expensive", points_required=500)

        # When
        everything = reward_service.list_available_rewards(user.id)
        affordable = reward_service.list_available_rewards(user.id, redeemable_only=True)

        # Then
        assert {r.name: r.can_redeem for r in everything.rewards} == {
            "Cheap": True,
            "Expensive": False,
        }
        assert [r.name for r in affordable.rewards] == ["Cheap"]

    def test_category_filter(self, reward_service, user, make_category, make_reward):
        other = make_category("Transportation")
        make_reward(name="Coffee")
        make_reward(name="Ride", category_id=other.id)

        result = reward_service.list_available_rewards(user.id, category_id=other.id)

        assert [r.name for r in result.rewards] == ["Ride"]
        assert result.rewards[0].category_name == "Transportation"

    def test_get_reward_not_found(self, reward_service):
        with pytest.raises(NotFoundError):
            reward_service.get_reward(12345)

    def test_get_all_rewards_includes_inactive_newest_first(
        self, reward_service, make_reward
    ):
        make_reward(name="Old")
        make_reward(name="New", status=RewardStatus.INACTIVE)

        rewards = reward_service.get_all_rewards()

        assert [r.name for r in rewards] == ["New", "Old"]


class TestVouchers:
    """바우처 상태 전이 테스트"""

    @pytest.fixture
    def voucher(self, reward_service, point_service, user, make_reward):
        _fund(point_service, user.id, 50)
        reward = make_reward(points_required=50)
        return reward_service.redeem_reward(user.id, reward.id)

    def test_mark_used(self, reward_service, user, voucher):
        result = reward_service.mark_voucher_used(voucher.id, user_id=user.id)

        assert result.status == VoucherStatus.USED
        assert result.used_at is not None
        assert result.is_active is False

    def test_mark_used_twice_fails(self, reward_service, voucher):
        reward_service.mark_voucher_used(voucher.id)

        with pytest.raises(VoucherNotActiveError):
            reward_service.mark_voucher_used(voucher.id)

    def test_mark_expired_voucher_fails(self, reward_service, db_session, voucher):
        # Given
        stored = db_session.get(UserReward, voucher.id)
        stored.expires_at = utc_now() - timedelta(minutes=1)
        db_session.commit()

        # When
        with pytest.raises(VoucherExpiredError):
            reward_service.mark_voucher_used(voucher.id)

        # Then
        db_session.expire_all()
        assert db_session.get(UserReward, voucher.id).status == VoucherStatus.ACTIVE.value

    def test_other_users_voucher_is_not_found(self, reward_service, make_user, voucher):
        stranger = make_user()

        with pytest.raises(NotFoundError):
            reward_service.mark_voucher_used(voucher.id, user_id=stranger.id)

    def test_expiry_is_derived_from_expires_at(self, db_session, voucher):
        stored = db_session.get(UserReward, voucher.id)
        assert stored.is_expired is False
        assert stored.days_until_expiry in (29, 30)

        stored.expires_at = utc_now() - timedelta(seconds=1)
        assert stored.is_expired is True
        assert stored.is_active is False
        assert stored.days_until_expiry == 0

    def test_user_rewards_status_filter(self, reward_service, user, voucher):
        reward_service.mark_voucher_used(voucher.id)

        assert len(reward_service.get_user_rewards(user.id)) == 1
        assert reward_service.get_user_rewards(user.id, VoucherStatus.ACTIVE) == []
        assert len(reward_service.get_user_rewards(user.id, VoucherStatus.USED)) == 1

    def test_qr_data(self, reward_service, user, voucher):
        result = reward_service.get_voucher_qr_data(voucher.id, user.id)

        payload = json.loads(result.qr_code_data)
        assert payload["voucher_code"] == voucher.voucher_code
        assert payload["reward_name"] == "Coffee Voucher"
        assert set(payload) == {"voucher_code", "reward_name", "redeemed_at", "expires_at"}


class TestCatalogAdministration:
    """관리자 카탈로그 관리 테스트"""

    def test_create_reward(self, reward_service, category):
        result = reward_service.create_reward(
            RewardCreateRequest(
                category_id=category.id,
                name="RM20 Grab Voucher",
                points_required=250,
                stock_quantity=80,
                voucher_code_prefix="GRAB",
            )
        )

        assert result.id is not None
        assert result.category_name == category.name
        assert result.remaining_stock == 80
        assert result.status == RewardStatus.ACTIVE

    def test_create_reward_requires_category(self, reward_service):
        with pytest.raises(NotFoundError):
            reward_service.create_reward(
                RewardCreateRequest(category_id=404, name="Orphan", points_required=10)
            )

    def test_update_reward_partial(self, reward_service, make_reward):
        reward = make_reward(points_required=50)

        result = reward_service.update_reward(
            reward.id,
            RewardUpdateRequest(points_required=80, status=RewardStatus.INACTIVE),
        )

        assert result.points_required == 80
        assert result.status == RewardStatus.INACTIVE
        assert result.name == "Coffee Voucher"

    def test_stock_cannot_drop_below_redeemed(self, reward_service, make_reward):
        reward = make_reward(stock_quantity=10, redeemed_count=5)

        with pytest.raises(ValidationError):
            reward_service.update_reward(reward.id, RewardUpdateRequest(stock_quantity=4))

        result = reward_service.update_reward(reward.id, RewardUpdateRequest(stock_quantity=0))
        assert result.remaining_stock is None

    def test_delete_reward_with_vouchers_is_refused(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        # Given
        _fund(point_service, user.id, 50)
        reward = make_reward(points_required=50)
        reward_service.redeem_reward(user.id, reward.id)

        # When
        with pytest.raises(HasDependentsError) as exc_info:
            reward_service.delete_reward(reward.id)

        # Then
        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "CONFLICT_002"
        assert db_session.get(Reward, reward.id) is not None

    def test_delete_unused_reward(self, reward_service, db_session, make_reward):
        reward = make_reward()

        reward_service.delete_reward(reward.id)

        assert db_session.query(Reward).count() == 0

    def test_category_lifecycle(self, reward_service, make_reward):
        # Given
        created = reward_service.create_category(
            RewardCategoryCreateRequest(name="Entertainment", icon="film")
        )
        reward_service.update_category(
            created.id, RewardCategoryUpdateRequest(description="Movies")
        )
        make_reward(category_id=created.id)

        # When / Then
        counts = {c.name: c.rewards_count for c in reward_service.get_categories()}
        assert counts["Entertainment"] == 1

        with pytest.raises(HasDependentsError):
            reward_service.delete_category(created.id)

    def test_delete_empty_category(self, reward_service, make_category):
        empty = make_category("Empty")

        reward_service.delete_category(empty.id)

        assert "Empty" not in [c.name for c in reward_service.get_categories()]

    def test_update_category_ignores_null_name(self, reward_service, make_category):
        category = make_category("Shopping")

        result = reward_service.update_category(
            category.id,
            RewardCategoryUpdateRequest.model_validate({"name": None, "icon": "bag"}),
        )

        assert result.name == "Shopping"
        assert result.icon == "bag"

    def test_create_reward_uses_configured_validity_days(
        self, db_session, point_service, category
    ):
        service = RewardService(
            db_session,
            point_service=point_service,
            settings=Settings(_env_file=None, DEFAULT_VOUCHER_VALIDITY_DAYS=14),
        )

        defaulted = service.create_reward(
            RewardCreateRequest(category_id=category.id, name="Bus Pass", points_required=20)
        )
        explicit = service.create_reward(
            RewardCreateRequest(
                category_id=category.id,
                name="Train Pass",
                points_required=20,
                validity_days=60,
            )
        )

        assert defaulted.validity_days == 14
        assert explicit.validity_days == 60

    def test_update_reward_with_missing_category_releases_lock(
        self, reward_service, db_session, make_reward
    ):
        reward = make_reward()

        with pytest.raises(NotFoundError):
            reward_service.update_reward(reward.id, RewardUpdateRequest(category_id=404))

        assert db_session.in_transaction() is False
        assert _reload_reward(db_session, reward.id).category_id != 404


class TestRewardStats:
    def test_stats_use_effective_voucher_state(
        self, reward_service, point_service, db_session, user, make_reward
    ):
        # Given
        _fund(point_service, user.id, 30)
        reward = make_reward(points_required=10)
        make_reward(name="Hidden", status=RewardStatus.INACTIVE)
        vouchers = [reward_service.redeem_reward(user.id, reward.id) for _ in range(3)]
        reward_service.mark_voucher_used(vouchers[0].id)
        expired = db_session.get(UserReward, vouchers[1].id)
        expired.expires_at = utc_now() - timedelta(days=1)
        db_session.commit()

        # When
        stats = reward_service.get_reward_stats()

        # Then
        assert stats.total_rewards == 2
        assert stats.active_rewards == 1
        assert stats.total_redemptions == 3
        assert stats.used_vouchers == 1
        assert stats.expired_vouchers == 1
        assert stats.active_vouchers == 1

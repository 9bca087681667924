import random
from collections import Counter
from types import SimpleNamespace

import pytest

from gatewayapi.core.exceptions import NotFoundError, TrafficShareExceededError
from gatewayapi.models.checkout import CheckoutStatus, CheckoutVariant
from gatewayapi.schemas.checkout import VariantCreateRequest
from gatewayapi.services.checkout_service import CheckoutService, select_weighted_variant


def variant(name, share):
    return SimpleNamespace(id=name, name=name, traffic_share=share)


class TestSelectWeightedVariant:
    def test_empty_list_selects_nothing(self):
        assert select_weighted_variant([], random.Random(1)) is None

    def test_selection_follows_traffic_share(self):
        rng = random.Random(20240601)
        variants = [variant("A", 70), variant("B", 30)]

        counts = Counter(select_weighted_variant(variants, rng).id for _ in range(10_000))

        assert counts["A"] + counts["B"] == 10_000
        assert 0.67 <= counts["A"] / 10_000 <= 0.73

    def test_zero_share_variant_is_never_selected(self):
        rng = random.Random(7)
        variants = [variant("off", 0), variant("on", 40)]

        picks = {select_weighted_variant(variants, rng).id for _ in range(1_000)}

        assert picks == {"on"}

    def test_all_zero_shares_select_uniformly(self):
        rng = random.Random(3)
        variants = [variant("A", 0), variant("B", 0)]

        counts = Counter(select_weighted_variant(variants, rng).id for _ in range(2_000))

        assert set(counts) == {"A", "B"}
        assert 0.4 <= counts["A"] / 2_000 <= 0.6

    def test_same_seed_gives_same_sequence(self):
        variants = [variant("A", 50), variant("B", 25), variant("C", 25)]

        first_rng, second_rng = random.Random(9), random.Random(9)
        first = [select_weighted_variant(variants, first_rng).id for _ in range(50)]
        second = [select_weighted_variant(variants, second_rng).id for _ in range(50)]

        assert first == second


@pytest.fixture
def checkout_service(db_session):
    return CheckoutService(db_session, rng=random.Random(42))


def total_views(db_session, checkout):
    db_session.expire_all()
    return sum(
        v.views
        for v in db_session.query(CheckoutVariant)
        .filter(CheckoutVariant.checkout_id == checkout.id)
        .all()
    )


class TestPublicCheckout:
    def test_each_view_increments_exactly_one_counter(
        self, db_session, checkout_service, user, make_checkout, make_variant
    ):
        # Given
        checkout = make_checkout(user)
        make_variant(checkout, "A", 70)
        make_variant(checkout, "B", 30)

        # When
        selected = [checkout_service.get_public_checkout(checkout.slug) for _ in range(25)]

        # Then
        assert total_views(db_session, checkout) == 25
        db_session.expire_all()
        views = {v.id: v.views for v in db_session.query(CheckoutVariant).all()}
        expected = Counter(response.selected_variant_id for response in selected)
        assert views == {vid: expected.get(vid, 0) for vid in views}

    def test_only_active_variants_are_returned(
        self, checkout_service, user, make_checkout, make_variant
    ):
        checkout = make_checkout(user)
        active = make_variant(checkout, "A", 50)
        make_variant(checkout, "B", 50, active=False)

        response = checkout_service.get_public_checkout(checkout.slug)

        assert [v.id for v in response.variants] == [active.id]
        assert response.selected_variant_id == active.id

    def test_checkout_without_variants_selects_nothing(
        self, checkout_service, user, make_checkout
    ):
        checkout = make_checkout(user)

        response = checkout_service.get_public_checkout(checkout.slug)

        assert response.variants == []
        assert response.selected_variant_id is None

    @pytest.mark.parametrize(
        "status,deleted",
        [(CheckoutStatus.DRAFT, False), (CheckoutStatus.INACTIVE, False), (CheckoutStatus.ACTIVE, True)],
    )
    def test_unavailable_checkout_is_not_found(
        self, checkout_service, user, make_checkout, status, deleted
    ):
        checkout = make_checkout(user, status=status, deleted=deleted)

        with pytest.raises(NotFoundError):
            checkout_service.get_public_checkout(checkout.slug)

    def test_unknown_slug_is_not_found(self, checkout_service):
        with pytest.raises(NotFoundError):
            checkout_service.get_public_checkout("missing")


class TestCreateVariant:
    def test_active_traffic_share_never_exceeds_100(
        self, db_session, checkout_service, user, make_checkout
    ):
        checkout = make_checkout(user)

        checkout_service.create_variant(
            user.id, checkout.id, VariantCreateRequest(name="A", traffic_share=60)
        )
        with pytest.raises(TrafficShareExceededError):
            checkout_service.create_variant(
                user.id, checkout.id, VariantCreateRequest(name="B", traffic_share=50)
            )
        created = checkout_service.create_variant(
            user.id, checkout.id, VariantCreateRequest(name="C", traffic_share=40)
        )

        assert created.traffic_share == 40
        assert created.views == 0
        listing = checkout_service.list_variants(user.id, checkout.id)
        assert listing.total_traffic_share == 100
        assert sorted(v.name for v in listing.variants) == ["A", "C"]

    def test_inactive_variants_do_not_count(
        self, checkout_service, user, make_checkout, make_variant
    ):
        checkout = make_checkout(user)
        make_variant(checkout, "old", 80, active=False)

        created = checkout_service.create_variant(
            user.id, checkout.id, VariantCreateRequest(name="new", traffic_share=100)
        )

        assert created.traffic_share == 100

    def test_checkout_of_another_user_is_not_found(
        self, checkout_service, user, other_user, make_checkout
    ):
        checkout = make_checkout(other_user)

        with pytest.raises(NotFoundError):
            checkout_service.create_variant(
                user.id, checkout.id, VariantCreateRequest(name="A", traffic_share=10)
            )


class TestRecordConversion:
    def test_conversion_increments_counter(
        self, checkout_service, user, make_checkout, make_variant
    ):
        checkout = make_checkout(user)
        target = make_variant(checkout, "A", 100)

        checkout_service.record_conversion(checkout.slug, target.id)
        response = checkout_service.record_conversion(checkout.slug, target.id)

        assert response.variant_id == target.id
        assert response.conversions == 2

    def test_variant_of_another_checkout_is_not_found(
        self, checkout_service, user, make_checkout, make_variant
    ):
        checkout = make_checkout(user, slug="first")
        other = make_checkout(user, slug="second")
        foreign = make_variant(other, "A", 100)

        with pytest.raises(NotFoundError):
            checkout_service.record_conversion(checkout.slug, foreign.id)

"""
Checkout A/B variant selection.

Each public view of a checkout picks one active variant, weighted by its
traffic share, and counts a view for it. Variant creation keeps the sum of
active traffic shares of a checkout within the configured maximum.
"""

import logging
import random
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from gatewayapi.config import settings
from gatewayapi.core.exceptions import (
    CheckoutSlugTakenError,
    NotFoundError,
    TrafficShareExceededError,
)
from gatewayapi.models.checkout import CheckoutStatus, CheckoutVariant
from gatewayapi.repositories.checkout_repository import CheckoutRepository
from gatewayapi.schemas.checkout import (
    CheckoutCreateRequest,
    CheckoutListResponse,
    CheckoutResponse,
    ConversionResponse,
    PublicCheckoutResponse,
    PublicVariant,
    VariantCreateRequest,
    VariantListResponse,
    VariantResponse,
)
from gatewayapi.schemas.pagination import PaginationMeta

logger = logging.getLogger(__name__)


def select_weighted_variant(
    variants: Sequence[CheckoutVariant], rng: random.Random
) -> Optional[CheckoutVariant]:
    """Pick a variant with probability traffic_share / total.

    `variants` must already be in a stable order. Zero-share variants are
    only eligible when every share is zero, in which case the pick is
    uniform.
    """
    if not variants:
        return None

    weighted = [variant for variant in variants if variant.traffic_share > 0]
    if not weighted:
        return rng.choice(list(variants))

    total = sum(variant.traffic_share for variant in weighted)
    draw = rng.random() * total
    cumulative = 0
    for variant in weighted:
        cumulative += variant.traffic_share
        if draw < cumulative:
            return variant
    return weighted[-1]


class CheckoutService:
    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()
        self.checkout_repo = CheckoutRepository(db)

    def get_public_checkout(self, slug: str) -> PublicCheckoutResponse:
        """Public checkout page data; counts one view for the selected variant"""
        checkout = self.checkout_repo.get_public_checkout(slug)
        if checkout is None:
            raise NotFoundError("Checkout not found or inactive", details={"slug": slug})

        variants = self.checkout_repo.list_variants(checkout.id, active_only=True)
        selected = select_weighted_variant(variants, self.rng)

        if selected is not None:
            try:
                self.checkout_repo.increment_views(selected.id)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to count view for variant {selected.id}: {str(e)}")
                raise

        return PublicCheckoutResponse(
            id=checkout.id,
            name=checkout.name,
            slug=checkout.slug,
            status=checkout.status,
            variants=[PublicVariant.model_validate(variant) for variant in variants],
            selected_variant_id=selected.id if selected else None,
        )

    def create_checkout(
        self, user_id: str, request: CheckoutCreateRequest
    ) -> CheckoutResponse:
        if self.checkout_repo.slug_exists(request.slug):
            raise CheckoutSlugTakenError(details={"slug": request.slug})

        checkout = self.checkout_repo.create_checkout(user_id, **request.model_dump())
        if checkout is None:
            raise CheckoutSlugTakenError(details={"slug": request.slug})

        logger.info(f"Created checkout {checkout.id} ({checkout.slug}) for user {user_id}")
        return CheckoutResponse.model_validate(checkout)

    def list_checkouts(
        self,
        user_id: str,
        status: Optional[CheckoutStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> CheckoutListResponse:
        rows, total = self.checkout_repo.list_checkouts(
            user_id, status=status, search=search, limit=limit, offset=(page - 1) * limit
        )
        checkouts = []
        for checkout, variants_count in rows:
            response = CheckoutResponse.model_validate(checkout)
            response.variants_count = variants_count
            checkouts.append(response)
        return CheckoutListResponse(
            checkouts=checkouts,
            pagination=PaginationMeta.build(page=page, limit=limit, total=total),
        )

    def create_variant(
        self, user_id: str, checkout_id: str, request: VariantCreateRequest
    ) -> VariantResponse:
        """Add a variant, keeping active traffic shares within the maximum.

        The checkout row stays locked from the sum to the insert.
        """
        try:
            checkout = self.checkout_repo.lock_owned_checkout(user_id, checkout_id)
            if checkout is None:
                raise NotFoundError(f"Checkout not found: {checkout_id}")

            current_share = self.checkout_repo.sum_active_traffic_share(checkout_id)
            if current_share + request.traffic_share > settings.MAX_VARIANT_TRAFFIC_SHARE:
                logger.warning(
                    f"Variant rejected for checkout {checkout_id}: "
                    f"{current_share} + {request.traffic_share} > "
                    f"{settings.MAX_VARIANT_TRAFFIC_SHARE}"
                )
                raise TrafficShareExceededError(
                    details={
                        "currentTrafficShare": current_share,
                        "requested": request.traffic_share,
                        "maximum": settings.MAX_VARIANT_TRAFFIC_SHARE,
                    }
                )

            variant = self.checkout_repo.add_variant(
                checkout_id, **request.model_dump()
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Created variant {variant.id} on checkout {checkout_id} "
            f"with {variant.traffic_share}% traffic"
        )
        return VariantResponse.model_validate(variant)

    def list_variants(self, user_id: str, checkout_id: str) -> VariantListResponse:
        checkout = self.checkout_repo.get_owned_checkout(user_id, checkout_id)
        if checkout is None:
            raise NotFoundError(f"Checkout not found: {checkout_id}")

        variants = self.checkout_repo.list_variants(checkout_id)
        return VariantListResponse(
            variants=[VariantResponse.model_validate(variant) for variant in variants],
            total_traffic_share=sum(v.traffic_share for v in variants if v.active),
        )

    def record_conversion(self, slug: str, variant_id: str) -> ConversionResponse:
        checkout = self.checkout_repo.get_public_checkout(slug)
        if checkout is None:
            raise NotFoundError("Checkout not found or inactive", details={"slug": slug})

        variant = self.checkout_repo.get_model(variant_id)
        if variant is None or variant.checkout_id != checkout.id or not variant.active:
            raise NotFoundError(f"Variant not found: {variant_id}")

        try:
            self.checkout_repo.increment_conversions(variant_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        conversions = self.checkout_repo.get_counter(variant_id, "conversions")
        logger.info(f"Conversion recorded for variant {variant_id} ({conversions} total)")
        return ConversionResponse(variant_id=variant_id, conversions=conversions)

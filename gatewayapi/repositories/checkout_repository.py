from typing import Any, List, Optional, Tuple

from sqlalchemy import desc, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatewayapi.models.checkout import (
    Checkout as CheckoutModel,
    CheckoutStatus,
    CheckoutVariant as CheckoutVariantModel,
)
from gatewayapi.repositories.base import BaseRepository
from gatewayapi.schemas.checkout import VariantResponse


class CheckoutRepository(BaseRepository[CheckoutVariantModel, VariantResponse]):
    """Checkouts and their A/B variants"""

    def __init__(self, db: Session):
        super().__init__(CheckoutVariantModel, VariantResponse, db)

    def lock_owned_checkout(self, user_id: str, checkout_id: str) -> Optional[CheckoutModel]:
        """SELECT ... FOR UPDATE on the caller's checkout row"""
        self._ensure_clean_session()
        return (
            self.db.query(CheckoutModel)
            .filter(
                CheckoutModel.id == checkout_id,
                CheckoutModel.user_id == user_id,
                CheckoutModel.deleted_at.is_(None),
            )
            .with_for_update()
            .first()
        )

    def get_owned_checkout(self, user_id: str, checkout_id: str) -> Optional[CheckoutModel]:
        self._ensure_clean_session()
        return (
            self.db.query(CheckoutModel)
            .filter(
                CheckoutModel.id == checkout_id,
                CheckoutModel.user_id == user_id,
                CheckoutModel.deleted_at.is_(None),
            )
            .first()
        )

    def get_public_checkout(self, slug: str) -> Optional[CheckoutModel]:
        """Active, not soft-deleted checkout by slug"""
        self._ensure_clean_session()
        return (
            self.db.query(CheckoutModel)
            .filter(
                CheckoutModel.slug == slug,
                CheckoutModel.status == CheckoutStatus.ACTIVE,
                CheckoutModel.deleted_at.is_(None),
            )
            .first()
        )

    def slug_exists(self, slug: str) -> bool:
        """Soft-deleted checkouts keep their slug"""
        return (
            self.db.query(CheckoutModel.id).filter(CheckoutModel.slug == slug).first()
            is not None
        )

    def create_checkout(self, user_id: str, **kwargs: Any) -> Optional[CheckoutModel]:
        """Insert a checkout; None when the slug was taken concurrently"""
        self._ensure_clean_session()
        checkout = CheckoutModel(user_id=user_id, **kwargs)
        self.db.add(checkout)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(checkout)
        return checkout

    def list_checkouts(
        self,
        user_id: str,
        status: Optional[CheckoutStatus] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Tuple[CheckoutModel, int]], int]:
        """(checkout, variant count) pairs, newest first, with the total count"""
        self._ensure_clean_session()
        query = self.db.query(CheckoutModel).filter(
            CheckoutModel.user_id == user_id,
            CheckoutModel.deleted_at.is_(None),
        )
        if status is not None:
            query = query.filter(CheckoutModel.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(CheckoutModel.name.ilike(pattern), CheckoutModel.slug.ilike(pattern))
            )

        total = query.count()
        variants_count = (
            self.db.query(func.count(self.model_class.id))
            .filter(self.model_class.checkout_id == CheckoutModel.id)
            .correlate(CheckoutModel)
            .scalar_subquery()
        )
        rows = (
            query.add_columns(variants_count)
            .order_by(desc(CheckoutModel.created_at), desc(CheckoutModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [(row[0], row[1]) for row in rows], total

    def list_variants(
        self, checkout_id: str, active_only: bool = False
    ) -> List[CheckoutVariantModel]:
        """Variants in selection order: created_at, then id"""
        self._ensure_clean_session()
        query = self.db.query(self.model_class).filter(
            self.model_class.checkout_id == checkout_id
        )
        if active_only:
            query = query.filter(self.model_class.active.is_(True))
        return query.order_by(self.model_class.created_at, self.model_class.id).all()

    def sum_active_traffic_share(self, checkout_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(self.model_class.traffic_share), 0))
            .filter(
                self.model_class.checkout_id == checkout_id,
                self.model_class.active.is_(True),
            )
            .scalar()
        )
        return int(total)

    def add_variant(self, checkout_id: str, **kwargs: Any) -> CheckoutVariantModel:
        """Add a variant to the current unit of work; the caller commits"""
        variant = self.model_class(checkout_id=checkout_id, **kwargs)
        self.db.add(variant)
        self.db.flush()
        self.db.refresh(variant)
        return variant

    def _increment(self, variant_id: str, column: str) -> int:
        counter = getattr(self.model_class, column)
        result = self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == variant_id)
            .values({column: counter + 1})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_views(self, variant_id: str) -> int:
        """views = views + 1 in a single statement; returns rows touched"""
        return self._increment(variant_id, "views")

    def increment_conversions(self, variant_id: str) -> int:
        return self._increment(variant_id, "conversions")

    def get_counter(self, variant_id: str, column: str) -> int:
        return int(
            self.db.query(getattr(self.model_class, column))
            .filter(self.model_class.id == variant_id)
            .scalar()
            or 0
        )

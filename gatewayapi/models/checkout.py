import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatewayapi.models.base import BaseModel, JSONType, generate_uuid
from gatewayapi.models.transaction import Currency


class CheckoutStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Checkout(BaseModel):
    __tablename__ = "checkouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    status: Mapped[CheckoutStatus] = mapped_column(
        Enum(CheckoutStatus), nullable=False, default=CheckoutStatus.DRAFT
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    variants: Mapped[List["CheckoutVariant"]] = relationship(back_populates="checkout")


class CheckoutVariant(BaseModel):
    __tablename__ = "checkout_variants"
    __table_args__ = (
        CheckConstraint(
            "traffic_share >= 0 AND traffic_share <= 100",
            name="ck_checkout_variants_traffic_share",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    checkout_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("checkouts.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    traffic_share: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    currency: Mapped[Optional[Currency]] = mapped_column(Enum(Currency), nullable=True)
    primary_color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    secondary_color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    banner_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    headline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subheadline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    layout: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    fields: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    # Monotonic counters, only ever incremented in SQL
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conversions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    checkout: Mapped[Checkout] = relationship(back_populates="variants")

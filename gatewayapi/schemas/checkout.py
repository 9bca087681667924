from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field

from gatewayapi.models.checkout import CheckoutStatus
from gatewayapi.models.transaction import Currency
from gatewayapi.schemas.common import APIModel, metadata_field
from gatewayapi.schemas.pagination import PaginationMeta


class VariantCreateRequest(APIModel):
    name: str = Field(..., min_length=1)
    traffic_share: int = Field(50, ge=0, le=100)
    active: bool = True
    price: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[Currency] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    banner_url: Optional[str] = None
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    layout: Optional[Dict[str, Any]] = None
    fields: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = metadata_field()


class PublicVariant(APIModel):
    """Variant fields safe to expose on the public checkout page"""

    id: str
    name: str
    traffic_share: int
    price: Optional[Decimal] = None
    currency: Optional[Currency] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    banner_url: Optional[str] = None
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    layout: Optional[Dict[str, Any]] = None
    fields: Optional[Dict[str, Any]] = None


class VariantResponse(PublicVariant):
    checkout_id: str
    active: bool
    views: int
    conversions: int
    meta: Optional[Dict[str, Any]] = metadata_field()
    created_at: Optional[datetime] = None


class VariantListResponse(APIModel):
    variants: List[VariantResponse]
    total_traffic_share: int


class PublicCheckoutResponse(APIModel):
    id: str
    name: str
    slug: str
    status: CheckoutStatus
    variants: List[PublicVariant]
    selected_variant_id: Optional[str] = Field(
        None, description="Variant shown for this view, if any"
    )


class ConversionResponse(APIModel):
    variant_id: str
    conversions: int


class CheckoutCreateRequest(APIModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(
        ...,
        min_length=1,
        max_length=120,
        pattern=r"^[a-z0-9-]+$",
        description="Lowercase letters, digits and hyphens",
    )
    status: CheckoutStatus = CheckoutStatus.ACTIVE
    meta: Optional[Dict[str, Any]] = metadata_field()


class CheckoutResponse(APIModel):
    id: str
    name: str
    slug: str
    status: CheckoutStatus
    meta: Optional[Dict[str, Any]] = metadata_field()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    variants_count: int = 0


class CheckoutListResponse(APIModel):
    checkouts: List[CheckoutResponse]
    pagination: PaginationMeta

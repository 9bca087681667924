import logging
from typing import Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Path, Query, status

from gatewayapi.core.auth_middleware import get_current_active_user
from gatewayapi.deps import get_checkout_service
from gatewayapi.models.checkout import CheckoutStatus
from gatewayapi.schemas.checkout import (
    CheckoutCreateRequest,
    CheckoutListResponse,
    CheckoutResponse,
    ConversionResponse,
    PublicCheckoutResponse,
    VariantCreateRequest,
    VariantListResponse,
    VariantResponse,
)
from gatewayapi.schemas.pagination import PaginationLimits
from gatewayapi.schemas.user import CurrentUser
from gatewayapi.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkouts", tags=["checkouts"])


@router.get("", response_model=CheckoutListResponse)
@inject
def list_checkouts(
    checkout_status: Optional[CheckoutStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Matches name or slug"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        PaginationLimits.CHECKOUTS["default"],
        ge=PaginationLimits.CHECKOUTS["min"],
        le=PaginationLimits.CHECKOUTS["max"],
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutListResponse:
    return checkout_service.list_checkouts(
        current_user.id, status=checkout_status, search=search, page=page, limit=limit
    )


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@inject
def create_checkout(
    request: CheckoutCreateRequest,
    current_user: CurrentUser = Depends(get_current_active_user),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Create a checkout; fails with 400 when the slug is taken"""
    return checkout_service.create_checkout(current_user.id, request)


@router.get("/public/{slug}", response_model=PublicCheckoutResponse)
@inject
def get_public_checkout(
    slug: str = Path(..., description="Checkout slug"),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> PublicCheckoutResponse:
    """Public checkout page; selects an A/B variant and counts the view.

    No authentication required.
    """
    return checkout_service.get_public_checkout(slug)


@router.post(
    "/public/{slug}/variants/{variant_id}/conversion",
    response_model=ConversionResponse,
)
@inject
def record_conversion(
    slug: str = Path(...),
    variant_id: str = Path(...),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> ConversionResponse:
    return checkout_service.record_conversion(slug, variant_id)


@router.get("/{checkout_id}/variants", response_model=VariantListResponse)
@inject
def list_variants(
    checkout_id: str = Path(...),
    current_user: CurrentUser = Depends(get_current_active_user),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> VariantListResponse:
    return checkout_service.list_variants(current_user.id, checkout_id)


@router.post(
    "/{checkout_id}/variants",
    response_model=VariantResponse,
    status_code=status.HTTP_201_CREATED,
)
@inject
def create_variant(
    request: VariantCreateRequest,
    checkout_id: str = Path(...),
    current_user: CurrentUser = Depends(get_current_active_user),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> VariantResponse:
    """Add an A/B variant; active traffic shares may not exceed 100%"""
    return checkout_service.create_variant(current_user.id, checkout_id, request)

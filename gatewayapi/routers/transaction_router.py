import logging
from datetime import date
from typing import Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Path, Query, status

from gatewayapi.core.auth_middleware import get_current_active_user
from gatewayapi.deps import get_split_service, get_transaction_service
from gatewayapi.models.transaction import TransactionStatus, TransactionType
from gatewayapi.schemas.pagination import PaginationLimits
from gatewayapi.schemas.transaction import (
    SplitCreateRequest,
    SplitListResponse,
    SplitResponse,
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdateRequest,
)
from gatewayapi.schemas.user import CurrentUser
from gatewayapi.services.split_service import SplitService, TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListResponse)
@inject
def list_transactions(
    tx_status: Optional[TransactionStatus] = Query(None, alias="status"),
    tx_type: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    q: Optional[str] = Query(None, description="Matches description or id"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        PaginationLimits.TRANSACTIONS["default"],
        ge=PaginationLimits.TRANSACTIONS["min"],
        le=PaginationLimits.TRANSACTIONS["max"],
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    transaction_service: TransactionService = Depends(get_transaction_service),
) -> TransactionListResponse:
    return transaction_service.list_transactions(
        current_user.id,
        status=tx_status,
        tx_type=tx_type,
        start_date=start_date,
        end_date=end_date,
        search=q,
        page=page,
        limit=limit,
    )


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
@inject
def create_transaction(
    request: TransactionCreateRequest,
    current_user: CurrentUser = Depends(get_current_active_user),
    transaction_service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    """Record a new transaction; it starts PENDING"""
    return transaction_service.create_transaction(current_user.id, request)


# Split routes are declared before /{transaction_id} so "splits" is not read as an id


@router.get("/splits", response_model=SplitListResponse)
@inject
def list_splits(
    transaction_id: Optional[str] = Query(None, alias="transactionId"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        PaginationLimits.SPLITS["default"],
        ge=PaginationLimits.SPLITS["min"],
        le=PaginationLimits.SPLITS["max"],
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    split_service: SplitService = Depends(get_split_service),
) -> SplitListResponse:
    return split_service.list_splits(
        current_user.id, transaction_id=transaction_id, page=page, limit=limit
    )


@router.post(
    "/splits", response_model=SplitResponse, status_code=status.HTTP_201_CREATED
)
@inject
def create_split(
    request: SplitCreateRequest,
    current_user: CurrentUser = Depends(get_current_active_user),
    split_service: SplitService = Depends(get_split_service),
) -> SplitResponse:
    """Carve part of a transaction out for another recipient.

    Fails with 400 when the transaction's splits would exceed its amount.
    """
    return split_service.create_split(
        current_user.id,
        transaction_id=request.transaction_id,
        amount=request.amount,
        recipient_email=request.recipient_email,
        metadata=request.meta,
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
@inject
def get_transaction(
    transaction_id: str = Path(..., description="Transaction id"),
    current_user: CurrentUser = Depends(get_current_active_user),
    transaction_service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    return transaction_service.get_transaction(current_user.id, transaction_id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
@inject
def update_transaction(
    request: TransactionUpdateRequest,
    transaction_id: str = Path(..., description="Transaction id"),
    current_user: CurrentUser = Depends(get_current_active_user),
    transaction_service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    return transaction_service.update_transaction(
        current_user.id, transaction_id, request
    )

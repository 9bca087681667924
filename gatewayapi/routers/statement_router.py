"""
Statement and billing API router

- GET /statements: daily statements with carried-forward balances
- POST /statements: record a manual ledger entry
- GET /billing: daily incoming/outgoing totals of completed transactions
"""

import logging
from datetime import date
from typing import Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Query, status

from gatewayapi.core.auth_middleware import get_current_active_user
from gatewayapi.deps import get_ledger_service
from gatewayapi.schemas.pagination import PaginationLimits
from gatewayapi.schemas.statement import (
    BillingSummaryResponse,
    StatementCreateRequest,
    StatementEntry,
    StatementListResponse,
)
from gatewayapi.schemas.user import CurrentUser
from gatewayapi.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["statements"])


@router.get("/statements", response_model=StatementListResponse)
@inject
def list_statements(
    start_date: Optional[date] = Query(None, alias="startDate", description="First day (inclusive)"),
    end_date: Optional[date] = Query(None, alias="endDate", description="Last day (inclusive)"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        PaginationLimits.STATEMENTS["default"],
        ge=PaginationLimits.STATEMENTS["min"],
        le=PaginationLimits.STATEMENTS["max"],
        description="Days per page",
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> StatementListResponse:
    """Daily statements for the range, oldest day first.

    Defaults to the 31 days ending today in the business timezone.
    """
    return ledger_service.list_daily_statements(
        current_user.id, start_date=start_date, end_date=end_date, page=page, limit=limit
    )


@router.post(
    "/statements", response_model=StatementEntry, status_code=status.HTTP_201_CREATED
)
@inject
def create_statement(
    request: StatementCreateRequest,
    current_user: CurrentUser = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> StatementEntry:
    return ledger_service.record_statement(current_user.id, request)


@router.get("/billing", response_model=BillingSummaryResponse)
@inject
def get_billing_summary(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: CurrentUser = Depends(get_current_active_user),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> BillingSummaryResponse:
    return ledger_service.get_billing_summary(
        current_user.id, start_date=start_date, end_date=end_date
    )

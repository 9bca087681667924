from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from gatewayapi.schemas.common import APIModel
from gatewayapi.schemas.pagination import PaginationMeta


class StatementEntry(APIModel):
    """Recorded ledger entry"""

    id: str
    as_of: datetime
    initial_balance: Decimal
    variation: Decimal
    final_balance: Decimal
    pending_balance: Decimal = Decimal("0.00")
    blocked_balance: Decimal = Decimal("0.00")
    reserve_balance: Decimal = Decimal("0.00")
    transactions_count: int = 0
    source: Optional[str] = None


class StatementCreateRequest(APIModel):
    """Manual ledger entry; final balance is always initial + variation"""

    variation: Decimal = Field(..., description="Signed balance variation")
    initial_balance: Optional[Decimal] = Field(
        None, description="Defaults to the current balance"
    )
    pending_balance: Decimal = Decimal("0.00")
    blocked_balance: Decimal = Decimal("0.00")
    reserve_balance: Decimal = Decimal("0.00")
    transactions_count: int = Field(0, ge=0)
    as_of: Optional[datetime] = None
    source: Optional[str] = Field(None, max_length=200)


class DailyStatement(APIModel):
    """One calendar day of a user's statement"""

    day: date
    initial_balance: Decimal
    entradas: Decimal = Field(..., description="Sum of positive variations")
    saidas: Decimal = Field(..., description="Sum of negative variations, as a magnitude")
    variation: Decimal
    final_balance: Decimal
    transactions_count: int = 0


class StatementListResponse(APIModel):
    statements: List[DailyStatement]
    current_balance: Decimal
    pagination: PaginationMeta


class BillingDay(APIModel):
    day: date
    entradas: Decimal
    saidas: Decimal


class BillingSummaryResponse(APIModel):
    days: List[BillingDay]
    total_entradas: Decimal
    total_saidas: Decimal

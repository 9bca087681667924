from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field

from gatewayapi.models.transaction import (
    Currency,
    SplitStatus,
    TransactionMethod,
    TransactionStatus,
    TransactionType,
)
from gatewayapi.schemas.common import APIModel, metadata_field
from gatewayapi.schemas.pagination import PaginationMeta


class TransactionSummary(APIModel):
    """Parent transaction fields embedded in split responses"""

    id: str
    amount: Decimal
    type: TransactionType
    method: TransactionMethod
    status: TransactionStatus


class SplitCreateRequest(APIModel):
    transaction_id: str = Field(..., min_length=1, description="Parent transaction id")
    amount: Decimal = Field(..., gt=0, description="Amount carved out of the transaction")
    recipient_email: EmailStr
    meta: Optional[Dict[str, Any]] = metadata_field()


class SplitResponse(APIModel):
    id: str
    transaction_id: str
    amount: Decimal
    recipient_email: str
    status: SplitStatus
    meta: Optional[Dict[str, Any]] = metadata_field()
    created_at: Optional[datetime] = None
    transaction: Optional[TransactionSummary] = None


class SplitListResponse(APIModel):
    splits: List[SplitResponse]
    pagination: PaginationMeta


class TransactionResponse(APIModel):
    id: str
    user_id: str
    amount: Decimal
    currency: Currency
    type: TransactionType
    method: TransactionMethod
    status: TransactionStatus
    fee_amount: Decimal
    description: Optional[str] = None
    external_ref: Optional[str] = None
    customer_id: Optional[str] = None
    acquirer_id: Optional[str] = None
    checkout_id: Optional[str] = None
    checkout_variant_id: Optional[str] = None
    meta: Optional[Dict[str, Any]] = metadata_field()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    splits: List[SplitResponse] = Field(default_factory=list)
    split_total: Decimal = Decimal("0.00")


class TransactionUpdateRequest(APIModel):
    """Only lifecycle fields may change; amount and parties are immutable"""

    status: Optional[TransactionStatus] = None
    fee_amount: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None
    meta: Optional[Dict[str, Any]] = metadata_field("Merged into the stored metadata")


class TransactionCreateRequest(APIModel):
    """New transactions always start PENDING"""

    amount: Decimal = Field(..., gt=0)
    currency: Currency = Currency.BRL
    type: TransactionType
    method: TransactionMethod
    description: Optional[str] = None
    customer_id: Optional[str] = None
    acquirer_id: Optional[str] = None
    external_ref: Optional[str] = None
    checkout_id: Optional[str] = Field(None, description="Checkout the payment came through")
    checkout_variant_id: Optional[str] = None
    meta: Optional[Dict[str, Any]] = metadata_field()


class TransactionStats(APIModel):
    """Totals over every transaction matching the list filters"""

    total_incoming: Decimal
    total_outgoing: Decimal
    total_fees: Decimal
    total_transactions: int


class TransactionListResponse(APIModel):
    transactions: List[TransactionResponse]
    pagination: PaginationMeta
    stats: TransactionStats

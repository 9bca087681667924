"""
Transaction ledger models.

Transactions are append-only: once created only status, fee, description
and metadata change. Splits carve a portion of a transaction's amount out
for another recipient.
"""

import enum
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatewayapi.models.base import BaseModel, JSONType, generate_uuid


class Currency(str, enum.Enum):
    BRL = "BRL"
    USD = "USD"
    EUR = "EUR"


class TransactionType(str, enum.Enum):
    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


class TransactionMethod(str, enum.Enum):
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"
    CRYPTO = "CRYPTO"
    BOLETO = "BOLETO"
    OTHER = "OTHER"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"
    CHARGEBACK = "CHARGEBACK"


class SplitStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class Transaction(BaseModel):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency), nullable=False, default=Currency.BRL
    )
    type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    method: Mapped[TransactionMethod] = mapped_column(
        Enum(TransactionMethod), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING
    )
    fee_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Collaborator records that live outside this service
    customer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    acquirer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    checkout_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("checkouts.id"), nullable=True
    )
    checkout_variant_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("checkout_variants.id"), nullable=True
    )
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    splits: Mapped[List["TransactionSplit"]] = relationship(
        back_populates="transaction", order_by="TransactionSplit.created_at"
    )


class TransactionSplit(BaseModel):
    __tablename__ = "transaction_splits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    transaction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("transactions.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[SplitStatus] = mapped_column(
        Enum(SplitStatus), nullable=False, default=SplitStatus.PENDING
    )
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    transaction: Mapped[Transaction] = relationship(back_populates="splits")

"""
Statement ledger entries.

Each row records one balance movement for a user: the balance before it,
the signed variation and the balance after it. Daily statements are
derived from these rows and are never edited by users.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from gatewayapi.models.base import BaseModel, generate_uuid


class Statement(BaseModel):
    __tablename__ = "statements"
    __table_args__ = (Index("ix_statements_user_as_of", "user_id", "as_of"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    as_of: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    initial_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    # Signed: positive for money in, negative for money out
    variation: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    final_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    pending_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    blocked_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    reserve_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    transactions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Origin tag, e.g. "transaction:<id>:COMPLETED" or "manual"
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)

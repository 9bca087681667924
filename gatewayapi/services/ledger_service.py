"""
Ledger aggregation - daily statements with carried-forward balances.

A day's opening balance is the previous day's closing balance; the first
day opens with the final balance of the last entry recorded before the
range. Days without movement are still reported, with a flat balance.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from gatewayapi.config import settings
from gatewayapi.core.exceptions import ValidationError
from gatewayapi.models.transaction import TransactionStatus, TransactionType
from gatewayapi.repositories.statement_repository import StatementRepository
from gatewayapi.repositories.transaction_repository import TransactionRepository
from gatewayapi.schemas.common import to_money
from gatewayapi.schemas.pagination import PaginationMeta
from gatewayapi.schemas.statement import (
    BillingDay,
    BillingSummaryResponse,
    DailyStatement,
    StatementCreateRequest,
    StatementEntry,
    StatementListResponse,
)
from gatewayapi.schemas.transaction import TransactionResponse
from gatewayapi.utils.timezone_utils import (
    day_range_utc,
    ensure_utc,
    get_current_business_date,
    local_day,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Statuses that undo a previously completed transaction
REVERSAL_STATUSES = (TransactionStatus.REFUNDED, TransactionStatus.CHARGEBACK)


class LedgerMovement(NamedTuple):
    """A single balance variation on a business day"""

    day: date
    variation: Decimal
    transactions_count: int = 0


def build_daily_statements(
    opening_balance: Decimal,
    movements: Iterable[LedgerMovement],
    start_date: date,
    end_date: date,
) -> List[DailyStatement]:
    """One DailyStatement per calendar day in [start_date, end_date], ascending.

    Movements outside the range are ignored. Returns [] when start > end.
    """
    if start_date > end_date:
        return []

    entradas: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    saidas: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[date, int] = defaultdict(int)
    for movement in movements:
        if movement.day < start_date or movement.day > end_date:
            continue
        if movement.variation >= 0:
            entradas[movement.day] += movement.variation
        else:
            saidas[movement.day] += -movement.variation
        counts[movement.day] += movement.transactions_count

    statements: List[DailyStatement] = []
    balance = to_money(opening_balance)
    day = start_date
    while day <= end_date:
        day_in = to_money(entradas[day])
        day_out = to_money(saidas[day])
        final_balance = balance + day_in - day_out
        statements.append(
            DailyStatement(
                day=day,
                initial_balance=balance,
                entradas=day_in,
                saidas=day_out,
                variation=final_balance - balance,
                final_balance=final_balance,
                transactions_count=counts[day],
            )
        )
        balance = final_balance
        day += timedelta(days=1)

    return statements


class LedgerService:
    """Statements, ledger postings and billing totals"""

    def __init__(self, db: Session):
        self.db = db
        self.statement_repo = StatementRepository(db)
        self.transaction_repo = TransactionRepository(db)

    def _resolve_range(
        self, start_date: Optional[date], end_date: Optional[date]
    ) -> tuple:
        end_date = end_date or get_current_business_date()
        start_date = start_date or end_date - timedelta(days=30)

        if start_date > end_date:
            raise ValidationError(
                "startDate must be on or before endDate",
                details={"startDate": str(start_date), "endDate": str(end_date)},
            )
        days = (end_date - start_date).days + 1
        if days > settings.STATEMENT_MAX_RANGE_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {settings.STATEMENT_MAX_RANGE_DAYS} days",
                details={"days": days},
            )
        return start_date, end_date

    def list_daily_statements(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 31,
    ) -> StatementListResponse:
        """Paginated daily statements for the range plus the current balance"""
        start_date, end_date = self._resolve_range(start_date, end_date)
        range_start, range_end = day_range_utc(start_date, end_date)

        opening = self.statement_repo.last_before(user_id, range_start)
        opening_balance = opening.final_balance if opening else ZERO

        entries = self.statement_repo.entries_in_range(user_id, range_start, range_end)
        movements = [
            LedgerMovement(
                day=local_day(entry.as_of),
                variation=entry.variation,
                transactions_count=entry.transactions_count,
            )
            for entry in entries
        ]
        days = build_daily_statements(opening_balance, movements, start_date, end_date)

        offset = (page - 1) * limit
        logger.info(
            f"Built {len(days)} daily statements for user {user_id} "
            f"({start_date} - {end_date}) from {len(entries)} entries"
        )
        return StatementListResponse(
            statements=days[offset : offset + limit],
            current_balance=self.statement_repo.current_balance(user_id),
            pagination=PaginationMeta.build(page=page, limit=limit, total=len(days)),
        )

    def record_statement(
        self, user_id: str, request: StatementCreateRequest
    ) -> StatementEntry:
        """Append a manual ledger entry.

        The ledger is append-only: an entry may not be dated before the
        latest recorded one, since every later entry already carries the
        balance forward from it.
        """
        as_of = ensure_utc(request.as_of)
        latest = self.statement_repo.latest(user_id)
        if latest is not None and as_of is not None and as_of < ensure_utc(latest.as_of):
            raise ValidationError(
                "Statement entries cannot be dated before the latest entry",
                details={
                    "asOf": as_of.isoformat(),
                    "latestAsOf": ensure_utc(latest.as_of).isoformat(),
                },
            )

        initial_balance = request.initial_balance
        if initial_balance is None:
            initial_balance = latest.final_balance if latest else ZERO

        entry = self.statement_repo.create_entry(
            user_id=user_id,
            initial_balance=to_money(initial_balance),
            variation=to_money(request.variation),
            pending_balance=to_money(request.pending_balance),
            blocked_balance=to_money(request.blocked_balance),
            reserve_balance=to_money(request.reserve_balance),
            transactions_count=request.transactions_count,
            as_of=as_of,
            source=request.source or "manual",
        )
        logger.info(
            f"Recorded statement {entry.id} for user {user_id}: "
            f"{entry.initial_balance} + {entry.variation} = {entry.final_balance}"
        )
        return entry

    def post_transaction(
        self, transaction: TransactionResponse, commit: bool = True
    ) -> Optional[StatementEntry]:
        """Post the balance effect of a transaction's current status.

        COMPLETED credits incoming funds net of fees and debits outgoing
        funds; REFUNDED and CHARGEBACK reverse a completed posting. Each
        (transaction, status) pair is posted at most once.
        """
        status = transaction.status
        if status != TransactionStatus.COMPLETED and status not in REVERSAL_STATUSES:
            return None

        completed_source = f"transaction:{transaction.id}:{TransactionStatus.COMPLETED.value}"
        source = f"transaction:{transaction.id}:{status.value}"

        if self.statement_repo.source_exists(transaction.user_id, source):
            logger.info(f"Transaction {transaction.id} already posted as {status.value}")
            return None

        if status == TransactionStatus.COMPLETED:
            if transaction.type == TransactionType.INCOMING:
                variation = to_money(transaction.amount) - to_money(transaction.fee_amount)
            else:
                variation = -to_money(transaction.amount)
        else:
            completed = self.statement_repo.get_by_source(
                transaction.user_id, completed_source
            )
            if completed is None:
                # Nothing was credited, so there is nothing to reverse
                return None
            # Undo exactly what was posted; fee edits after completion don't count
            variation = -completed.variation

        entry = self.statement_repo.create_entry(
            user_id=transaction.user_id,
            initial_balance=self.statement_repo.current_balance(transaction.user_id),
            variation=variation,
            transactions_count=1,
            source=source,
            commit=commit,
        )
        logger.info(
            f"Posted transaction {transaction.id} ({status.value}) "
            f"to ledger: variation {variation}"
        )
        return entry

    def get_billing_summary(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> BillingSummaryResponse:
        """Per-day incoming/outgoing totals of completed transactions"""
        start_date, end_date = self._resolve_range(start_date, end_date)
        range_start, range_end = day_range_utc(start_date, end_date)

        entradas: Dict[date, Decimal] = defaultdict(lambda: ZERO)
        saidas: Dict[date, Decimal] = defaultdict(lambda: ZERO)
        for created_at, tx_type, amount in self.transaction_repo.completed_movements(
            user_id, range_start, range_end
        ):
            day = local_day(created_at)
            if tx_type == TransactionType.INCOMING:
                entradas[day] += amount
            else:
                saidas[day] += amount

        days = []
        day = start_date
        while day <= end_date:
            days.append(
                BillingDay(
                    day=day,
                    entradas=to_money(entradas[day]),
                    saidas=to_money(saidas[day]),
                )
            )
            day += timedelta(days=1)

        return BillingSummaryResponse(
            days=days,
            total_entradas=to_money(sum((d.entradas for d in days), ZERO)),
            total_saidas=to_money(sum((d.saidas for d in days), ZERO)),
        )

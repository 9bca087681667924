from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, desc, func, or_
from sqlalchemy.orm import Session

from gatewayapi.models.transaction import (
    Transaction as TransactionModel,
    TransactionSplit as TransactionSplitModel,
    TransactionStatus,
    TransactionType,
)
from gatewayapi.repositories.base import BaseRepository
from gatewayapi.schemas.common import to_money
from gatewayapi.schemas.transaction import (
    SplitResponse,
    TransactionResponse,
    TransactionStats,
)


class TransactionRepository(BaseRepository[TransactionModel, TransactionResponse]):
    """Transactions and their splits"""

    def __init__(self, db: Session):
        super().__init__(TransactionModel, TransactionResponse, db)

    def _to_schema(self, model_instance: Any) -> Optional[TransactionResponse]:
        response = super()._to_schema(model_instance)
        if response is not None:
            response.split_total = to_money(
                sum((split.amount for split in response.splits), Decimal("0"))
            )
        return response

    def to_response(self, instance: TransactionModel) -> TransactionResponse:
        return self._to_schema(instance)

    def get_owned(self, user_id: str, transaction_id: str) -> Optional[TransactionResponse]:
        self._ensure_clean_session()
        instance = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.id == transaction_id,
                self.model_class.user_id == user_id,
            )
            .first()
        )
        return self._to_schema(instance)

    def lock_owned(self, user_id: str, transaction_id: str) -> Optional[TransactionModel]:
        """SELECT ... FOR UPDATE on the caller's transaction row.

        The lock is held until the session commits or rolls back.
        """
        self._ensure_clean_session()
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.id == transaction_id,
                self.model_class.user_id == user_id,
            )
            .with_for_update()
            .first()
        )

    def create_transaction(self, user_id: str, **kwargs) -> TransactionResponse:
        """Insert a PENDING transaction"""
        return self.create(
            user_id=user_id,
            status=TransactionStatus.PENDING,
            fee_amount=Decimal("0.00"),
            **kwargs,
        )

    def _filtered(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
        tx_type: Optional[TransactionType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        search: Optional[str] = None,
    ):
        query = self.db.query(self.model_class).filter(self.model_class.user_id == user_id)
        if status is not None:
            query = query.filter(self.model_class.status == status)
        if tx_type is not None:
            query = query.filter(self.model_class.type == tx_type)
        if start is not None:
            query = query.filter(self.model_class.created_at >= start)
        if end is not None:
            query = query.filter(self.model_class.created_at < end)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    self.model_class.description.ilike(pattern),
                    self.model_class.id.ilike(pattern),
                )
            )
        return query

    def list_transactions(
        self, user_id: str, limit: int = 20, offset: int = 0, **filters
    ) -> Tuple[List[TransactionResponse], int]:
        """The caller's transactions, newest first, with the total count"""
        self._ensure_clean_session()
        query = self._filtered(user_id, **filters)
        total = query.count()
        transactions = (
            query.order_by(desc(self.model_class.created_at), desc(self.model_class.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return self._to_schemas(transactions), total

    def transaction_stats(self, user_id: str, **filters) -> TransactionStats:
        """Incoming, outgoing and fee totals over the filtered transactions"""
        self._ensure_clean_session()
        model = self.model_class
        incoming, outgoing, fees, count = (
            self._filtered(user_id, **filters)
            .with_entities(
                func.coalesce(
                    func.sum(case((model.type == TransactionType.INCOMING, model.amount), else_=0)),
                    0,
                ),
                func.coalesce(
                    func.sum(case((model.type == TransactionType.OUTGOING, model.amount), else_=0)),
                    0,
                ),
                func.coalesce(func.sum(model.fee_amount), 0),
                func.count(model.id),
            )
            .one()
        )
        return TransactionStats(
            total_incoming=to_money(incoming),
            total_outgoing=to_money(outgoing),
            total_fees=to_money(fees),
            total_transactions=count,
        )

    # Splits

    def sum_splits(self, transaction_id: str) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(TransactionSplitModel.amount), 0))
            .filter(TransactionSplitModel.transaction_id == transaction_id)
            .scalar()
        )
        return to_money(total)

    def create_split(
        self,
        transaction_id: str,
        amount: Decimal,
        recipient_email: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> TransactionSplitModel:
        """Add a split to the current unit of work; the caller commits"""
        split = TransactionSplitModel(
            transaction_id=transaction_id,
            amount=amount,
            recipient_email=recipient_email,
            meta=meta,
        )
        self.db.add(split)
        self.db.flush()
        self.db.refresh(split)
        return split

    def list_splits(
        self,
        user_id: str,
        transaction_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[SplitResponse], int]:
        """Splits on the caller's transactions, newest first, with the total count"""
        self._ensure_clean_session()
        query = (
            self.db.query(TransactionSplitModel)
            .join(TransactionModel, TransactionSplitModel.transaction_id == TransactionModel.id)
            .filter(TransactionModel.user_id == user_id)
        )
        if transaction_id:
            query = query.filter(TransactionSplitModel.transaction_id == transaction_id)

        total = query.count()
        splits = (
            query.order_by(desc(TransactionSplitModel.created_at), desc(TransactionSplitModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [SplitResponse.model_validate(split) for split in splits], total

    # Billing

    def completed_movements(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[Tuple[datetime, TransactionType, Decimal]]:
        """(created_at, type, amount) of COMPLETED transactions in [start, end)"""
        self._ensure_clean_session()
        rows = (
            self.db.query(
                self.model_class.created_at,
                self.model_class.type,
                self.model_class.amount,
            )
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.status == TransactionStatus.COMPLETED,
                self.model_class.created_at >= start,
                self.model_class.created_at < end,
            )
            .order_by(self.model_class.created_at)
            .all()
        )
        return [(row[0], row[1], row[2]) for row in rows]

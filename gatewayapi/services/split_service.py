import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from gatewayapi.core.exceptions import (
    NotFoundError,
    SplitLimitExceededError,
    ValidationError,
)
from gatewayapi.models.transaction import TransactionStatus, TransactionType
from gatewayapi.repositories.checkout_repository import CheckoutRepository
from gatewayapi.repositories.transaction_repository import TransactionRepository
from gatewayapi.schemas.common import to_money
from gatewayapi.schemas.pagination import PaginationMeta
from gatewayapi.schemas.transaction import (
    SplitListResponse,
    SplitResponse,
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdateRequest,
)
from gatewayapi.services.ledger_service import LedgerService
from gatewayapi.utils.timezone_utils import day_start_utc

logger = logging.getLogger(__name__)


class SplitService:
    """Splits carve part of a transaction out for another recipient.

    The accepted splits of a transaction never add up to more than its
    amount. Creation locks the parent transaction row so two concurrent
    requests cannot both pass the check.
    """

    def __init__(self, db: Session):
        self.db = db
        self.transaction_repo = TransactionRepository(db)

    def create_split(
        self,
        user_id: str,
        transaction_id: str,
        amount: Decimal,
        recipient_email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SplitResponse:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError(
                "Split amount must be positive", details={"amount": str(amount)}
            )

        try:
            transaction = self.transaction_repo.lock_owned(user_id, transaction_id)
            if transaction is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            existing_total = self.transaction_repo.sum_splits(transaction_id)
            new_total = existing_total + amount
            if new_total > transaction.amount:
                logger.warning(
                    f"Split rejected for transaction {transaction_id}: "
                    f"{existing_total} + {amount} > {transaction.amount}"
                )
                raise SplitLimitExceededError(
                    details={
                        "transactionAmount": str(transaction.amount),
                        "existingSplits": str(existing_total),
                        "requested": str(amount),
                    }
                )

            split = self.transaction_repo.create_split(
                transaction_id=transaction_id,
                amount=amount,
                recipient_email=recipient_email,
                meta=metadata,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Created split {split.id} of {amount} on transaction {transaction_id} "
            f"for {recipient_email}"
        )
        return SplitResponse.model_validate(split)

    def list_splits(
        self,
        user_id: str,
        transaction_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> SplitListResponse:
        splits, total = self.transaction_repo.list_splits(
            user_id,
            transaction_id=transaction_id,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return SplitListResponse(
            splits=splits,
            pagination=PaginationMeta.build(page=page, limit=limit, total=total),
        )


class TransactionService:
    """Intake, reads and lifecycle updates of a user's transactions"""

    def __init__(self, db: Session):
        self.db = db
        self.transaction_repo = TransactionRepository(db)
        self.checkout_repo = CheckoutRepository(db)
        self.ledger_service = LedgerService(db)

    def create_transaction(
        self, user_id: str, request: TransactionCreateRequest
    ) -> TransactionResponse:
        """Record a new PENDING transaction.

        A checkout reference must point at one of the caller's checkouts,
        and a variant reference at a variant of that checkout.
        """
        if request.checkout_variant_id and not request.checkout_id:
            raise ValidationError(
                "checkoutVariantId requires checkoutId",
                details={"checkoutVariantId": request.checkout_variant_id},
            )
        if request.checkout_id:
            checkout = self.checkout_repo.get_owned_checkout(user_id, request.checkout_id)
            if checkout is None:
                raise NotFoundError(f"Checkout not found: {request.checkout_id}")
        if request.checkout_variant_id:
            variant = self.checkout_repo.get_model(request.checkout_variant_id)
            if variant is None or variant.checkout_id != request.checkout_id:
                raise NotFoundError(
                    f"Checkout variant not found: {request.checkout_variant_id}"
                )

        transaction = self.transaction_repo.create_transaction(
            user_id,
            amount=to_money(request.amount),
            **request.model_dump(exclude={"amount"}),
        )
        logger.info(
            f"Created {transaction.type.value} transaction {transaction.id} "
            f"of {transaction.amount} {transaction.currency.value} for user {user_id}"
        )
        return transaction

    def list_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
        tx_type: Optional[TransactionType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> TransactionListResponse:
        """Newest first; dates are business days, both inclusive"""
        filters = {
            "status": status,
            "tx_type": tx_type,
            "start": day_start_utc(start_date) if start_date else None,
            "end": day_start_utc(end_date + timedelta(days=1)) if end_date else None,
            "search": search,
        }
        transactions, total = self.transaction_repo.list_transactions(
            user_id, limit=limit, offset=(page - 1) * limit, **filters
        )
        return TransactionListResponse(
            transactions=transactions,
            pagination=PaginationMeta.build(page=page, limit=limit, total=total),
            stats=self.transaction_repo.transaction_stats(user_id, **filters),
        )

    def get_transaction(self, user_id: str, transaction_id: str) -> TransactionResponse:
        transaction = self.transaction_repo.get_owned(user_id, transaction_id)
        if not transaction:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    def update_transaction(
        self, user_id: str, transaction_id: str, request: TransactionUpdateRequest
    ) -> TransactionResponse:
        """Update status, fee, description or metadata.

        A status change to COMPLETED, REFUNDED or CHARGEBACK is posted to
        the ledger in the same database transaction.
        """
        try:
            transaction = self.transaction_repo.lock_owned(user_id, transaction_id)
            if transaction is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            previous_status = transaction.status
            if request.fee_amount is not None:
                transaction.fee_amount = to_money(request.fee_amount)
            if request.description is not None:
                transaction.description = request.description
            if request.meta is not None:
                transaction.meta = {**(transaction.meta or {}), **request.meta}
            if request.status is not None:
                transaction.status = request.status

            self.db.flush()
            response = self.transaction_repo.to_response(transaction)
            if request.status is not None and request.status != previous_status:
                self.ledger_service.post_transaction(response, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Updated transaction {transaction_id}: status {previous_status.value} -> "
            f"{response.status.value}"
        )
        return response

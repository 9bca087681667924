"""
Statement repository.

Ledger entries are append-only. Reads are ordered by `as_of` and then by
insertion time, which is the order balances are carried forward in.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from gatewayapi.models.statement import Statement as StatementModel
from gatewayapi.repositories.base import BaseRepository
from gatewayapi.schemas.statement import StatementEntry
from gatewayapi.utils.timezone_utils import utc_now


class StatementRepository(BaseRepository[StatementModel, StatementEntry]):
    def __init__(self, db: Session):
        super().__init__(StatementModel, StatementEntry, db)

    def last_before(self, user_id: str, before: datetime) -> Optional[StatementEntry]:
        """Latest entry strictly before `before`"""
        self._ensure_clean_session()
        entry = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.as_of < before,
            )
            .order_by(desc(self.model_class.as_of), desc(self.model_class.created_at))
            .first()
        )
        return self._to_schema(entry)

    def latest(self, user_id: str) -> Optional[StatementEntry]:
        self._ensure_clean_session()
        entry = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.as_of), desc(self.model_class.created_at))
            .first()
        )
        return self._to_schema(entry)

    def current_balance(self, user_id: str) -> Decimal:
        entry = self.latest(user_id)
        return entry.final_balance if entry else Decimal("0.00")

    def entries_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[StatementEntry]:
        """Entries with start <= as_of < end, oldest first"""
        self._ensure_clean_session()
        entries = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.as_of >= start,
                self.model_class.as_of < end,
            )
            .order_by(self.model_class.as_of, self.model_class.created_at)
            .all()
        )
        return self._to_schemas(entries)

    def source_exists(self, user_id: str, source: str) -> bool:
        return self.exists({"user_id": user_id, "source": source})

    def get_by_source(self, user_id: str, source: str) -> Optional[StatementEntry]:
        """The entry posted under a source tag, if any"""
        self._ensure_clean_session()
        entry = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.source == source,
            )
            .order_by(self.model_class.created_at)
            .first()
        )
        return self._to_schema(entry)

    def create_entry(
        self,
        user_id: str,
        initial_balance: Decimal,
        variation: Decimal,
        commit: bool = True,
        **kwargs,
    ) -> StatementEntry:
        """Append an entry; the final balance is always initial + variation"""
        kwargs["as_of"] = kwargs.get("as_of") or utc_now()
        return self.create(
            commit=commit,
            user_id=user_id,
            initial_balance=initial_balance,
            variation=variation,
            final_balance=initial_balance + variation,
            **kwargs,
        )

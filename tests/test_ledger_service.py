import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from gatewayapi.core.exceptions import ValidationError
from gatewayapi.models.statement import Statement
from gatewayapi.models.transaction import TransactionStatus, TransactionType
from gatewayapi.schemas.statement import StatementCreateRequest
from gatewayapi.schemas.transaction import TransactionUpdateRequest
from gatewayapi.services.ledger_service import (
    LedgerMovement,
    LedgerService,
    build_daily_statements,
)
from gatewayapi.services.split_service import TransactionService


def D(value):
    return Decimal(value)


def _status_update(status):
    return TransactionUpdateRequest(status=status)


def noon_sao_paulo(day: date) -> datetime:
    # 12:00 in America/Sao_Paulo (UTC-3)
    return datetime(day.year, day.month, day.day, 15, 0, tzinfo=timezone.utc)


class TestBuildDailyStatements:
    """Daily aggregation of ledger movements"""

    def test_one_record_per_day_including_empty_days(self):
        # Arrange
        start, end = date(2026, 3, 1), date(2026, 3, 5)
        movements = [LedgerMovement(day=date(2026, 3, 3), variation=D("10.00"))]

        # Act
        days = build_daily_statements(D("0.00"), movements, start, end)

        # Assert
        assert [d.day for d in days] == [start + timedelta(days=i) for i in range(5)]
        assert [d.final_balance for d in days] == [D("0"), D("0"), D("10"), D("10"), D("10")]

    def test_entradas_and_saidas_are_split_by_sign(self):
        day = date(2026, 3, 1)
        movements = [
            LedgerMovement(day=day, variation=D("100.00"), transactions_count=1),
            LedgerMovement(day=day, variation=D("-30.00"), transactions_count=1),
            LedgerMovement(day=day, variation=D("20.00"), transactions_count=2),
        ]

        [statement] = build_daily_statements(D("50.00"), movements, day, day)

        assert statement.initial_balance == D("50.00")
        assert statement.entradas == D("120.00")
        assert statement.saidas == D("30.00")
        assert statement.variation == D("90.00")
        assert statement.final_balance == D("140.00")
        assert statement.transactions_count == 4

    def test_balances_carry_forward(self):
        start, end = date(2026, 1, 1), date(2026, 1, 31)
        movements = [
            LedgerMovement(day=start + timedelta(days=i % 31), variation=D(str((-1) ** i * (i + 0.5))))
            for i in range(60)
        ]

        days = build_daily_statements(D("1000.00"), movements, start, end)

        assert len(days) == 31
        assert days[0].initial_balance == D("1000.00")
        for previous, current in zip(days, days[1:]):
            assert current.initial_balance == previous.final_balance
        for statement in days:
            assert statement.final_balance == (
                statement.initial_balance + statement.entradas - statement.saidas
            )
            assert statement.variation == statement.final_balance - statement.initial_balance

    def test_movements_outside_range_are_ignored(self):
        day = date(2026, 3, 10)
        movements = [
            LedgerMovement(day=day - timedelta(days=1), variation=D("5.00")),
            LedgerMovement(day=day + timedelta(days=1), variation=D("-5.00")),
        ]

        [statement] = build_daily_statements(D("1.00"), movements, day, day)

        assert statement.entradas == D("0.00")
        assert statement.saidas == D("0.00")
        assert statement.final_balance == D("1.00")

    def test_start_after_end_returns_empty(self):
        assert build_daily_statements(D("0"), [], date(2026, 3, 2), date(2026, 3, 1)) == []


@pytest.fixture
def ledger_service(db_session):
    return LedgerService(db_session)


def record(ledger_service, user, variation, as_of):
    return ledger_service.record_statement(
        user.id, StatementCreateRequest(variation=D(variation), as_of=as_of)
    )


class TestLedgerService:
    def test_opening_balance_comes_from_last_entry_before_range(self, ledger_service, user):
        # Given
        record(ledger_service, user, "100.00", noon_sao_paulo(date(2026, 1, 5)))
        record(ledger_service, user, "50.00", noon_sao_paulo(date(2026, 1, 10)))
        record(ledger_service, user, "-30.00", noon_sao_paulo(date(2026, 1, 11)))

        # When
        result = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 1, 9), end_date=date(2026, 1, 12)
        )

        # Then
        summary = [
            (s.day.day, s.initial_balance, s.entradas, s.saidas, s.final_balance)
            for s in result.statements
        ]
        assert summary == [
            (9, D("100"), D("0"), D("0"), D("100")),
            (10, D("100"), D("50"), D("0"), D("150")),
            (11, D("150"), D("0"), D("30"), D("120")),
            (12, D("120"), D("0"), D("0"), D("120")),
        ]
        assert result.current_balance == D("120.00")

    def test_no_prior_entries_opens_at_zero(self, ledger_service, user):
        result = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 2, 1), end_date=date(2026, 2, 2)
        )

        assert [s.initial_balance for s in result.statements] == [D("0"), D("0")]
        assert result.current_balance == D("0.00")

    def test_days_are_cut_in_business_timezone(self, ledger_service, user):
        # 02:00 UTC on the 10th is still the 9th in Sao Paulo
        record(
            ledger_service,
            user,
            "25.00",
            datetime(2026, 1, 10, 2, 0, tzinfo=timezone.utc),
        )

        result = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 1, 9), end_date=date(2026, 1, 10)
        )

        assert result.statements[0].entradas == D("25.00")
        assert result.statements[1].entradas == D("0.00")

    def test_entries_of_other_users_are_ignored(self, ledger_service, user, other_user):
        record(ledger_service, other_user, "999.00", noon_sao_paulo(date(2026, 1, 10)))

        result = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 1, 10), end_date=date(2026, 1, 10)
        )

        assert result.statements[0].final_balance == D("0.00")

    def test_days_are_paginated(self, ledger_service, user):
        result = ledger_service.list_daily_statements(
            user.id,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 1, 10),
            page=2,
            limit=3,
        )

        assert [s.day.day for s in result.statements] == [4, 5, 6]
        assert result.pagination.total == 10
        assert result.pagination.pages == 4

    def test_start_after_end_is_rejected(self, ledger_service, user):
        with pytest.raises(ValidationError):
            ledger_service.list_daily_statements(
                user.id, start_date=date(2026, 1, 2), end_date=date(2026, 1, 1)
            )

    def test_range_longer_than_maximum_is_rejected(self, ledger_service, user):
        with pytest.raises(ValidationError):
            ledger_service.list_daily_statements(
                user.id, start_date=date(2020, 1, 1), end_date=date(2026, 1, 1)
            )

    def test_record_statement_defaults_initial_balance_to_current(self, ledger_service, user):
        record(ledger_service, user, "80.00", noon_sao_paulo(date(2026, 1, 1)))

        entry = record(ledger_service, user, "-20.00", noon_sao_paulo(date(2026, 1, 2)))

        assert entry.initial_balance == D("80.00")
        assert entry.final_balance == D("60.00")
        assert entry.source == "manual"

    def test_backdated_entry_is_rejected(self, ledger_service, user):
        record(ledger_service, user, "100.00", noon_sao_paulo(date(2026, 1, 10)))

        with pytest.raises(ValidationError):
            record(ledger_service, user, "50.00", noon_sao_paulo(date(2026, 1, 5)))

        # A day's balance doesn't depend on where the queried range starts
        from_jan_1 = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 1, 1), end_date=date(2026, 1, 10)
        )
        from_jan_6 = ledger_service.list_daily_statements(
            user.id, start_date=date(2026, 1, 6), end_date=date(2026, 1, 10)
        )
        assert from_jan_1.statements[-1].final_balance == D("100.00")
        assert from_jan_6.statements[-1].final_balance == D("100.00")

    def test_entry_on_the_latest_timestamp_is_accepted(self, ledger_service, user):
        as_of = noon_sao_paulo(date(2026, 1, 10))
        record(ledger_service, user, "100.00", as_of)

        entry = record(ledger_service, user, "-10.00", as_of)

        assert entry.initial_balance == D("100.00")
        assert entry.final_balance == D("90.00")


class TestLedgerPosting:
    """Transaction status changes posted to the ledger"""

    def _complete(self, db_session, user, transaction):
        return TransactionService(db_session).update_transaction(
            user.id,
            transaction.id,
            _status_update(TransactionStatus.COMPLETED),
        )

    def test_completed_incoming_is_credited_net_of_fee(
        self, db_session, ledger_service, user, make_transaction
    ):
        transaction = make_transaction(user, amount="100.00", fee_amount="2.50")

        self._complete(db_session, user, transaction)

        entries = db_session.query(Statement).filter(Statement.user_id == user.id).all()
        assert len(entries) == 1
        assert entries[0].variation == D("97.50")
        assert entries[0].source == f"transaction:{transaction.id}:COMPLETED"

    def test_posting_is_idempotent_per_status(
        self, db_session, ledger_service, user, make_transaction
    ):
        transaction = make_transaction(user, amount="100.00")
        response = self._complete(db_session, user, transaction)

        assert ledger_service.post_transaction(response) is None
        assert db_session.query(Statement).count() == 1

    def test_refund_reverses_completed_posting(
        self, db_session, ledger_service, user, make_transaction
    ):
        transaction = make_transaction(user, amount="40.00", type=TransactionType.OUTGOING)
        self._complete(db_session, user, transaction)

        TransactionService(db_session).update_transaction(
            user.id, transaction.id, _status_update(TransactionStatus.REFUNDED)
        )

        variations = [
            entry.variation
            for entry in db_session.query(Statement).order_by(Statement.created_at).all()
        ]
        assert sorted(variations) == [D("-40.00"), D("40.00")]
        assert ledger_service.statement_repo.current_balance(user.id) == D("0.00")

    def test_refund_undoes_posted_amount_after_fee_change(
        self, db_session, ledger_service, user, make_transaction
    ):
        transaction = make_transaction(user, amount="100.00")
        self._complete(db_session, user, transaction)
        service = TransactionService(db_session)
        service.update_transaction(
            user.id, transaction.id, TransactionUpdateRequest(fee_amount=D("5.00"))
        )

        service.update_transaction(
            user.id, transaction.id, _status_update(TransactionStatus.REFUNDED)
        )

        refund = (
            db_session.query(Statement)
            .filter(Statement.source == f"transaction:{transaction.id}:REFUNDED")
            .one()
        )
        assert refund.variation == D("-100.00")
        assert ledger_service.statement_repo.current_balance(user.id) == D("0.00")

    def test_refund_without_completion_posts_nothing(
        self, db_session, user, make_transaction
    ):
        transaction = make_transaction(user)

        TransactionService(db_session).update_transaction(
            user.id, transaction.id, _status_update(TransactionStatus.REFUNDED)
        )

        assert db_session.query(Statement).count() == 0


class TestBillingSummary:
    def test_totals_only_include_completed_transactions(
        self, ledger_service, user, make_transaction
    ):
        day = date(2026, 4, 7)
        make_transaction(
            user, amount="100.00", status=TransactionStatus.COMPLETED,
            created_at=noon_sao_paulo(day),
        )
        make_transaction(
            user, amount="30.00", type=TransactionType.OUTGOING,
            status=TransactionStatus.COMPLETED, created_at=noon_sao_paulo(day),
        )
        make_transaction(
            user, amount="500.00", status=TransactionStatus.PENDING,
            created_at=noon_sao_paulo(day),
        )

        summary = ledger_service.get_billing_summary(
            user.id, start_date=day - timedelta(days=1), end_date=day
        )

        assert [(d.entradas, d.saidas) for d in summary.days] == [
            (D("0.00"), D("0.00")),
            (D("100.00"), D("30.00")),
        ]
        assert summary.total_entradas == D("100.00")
        assert summary.total_saidas == D("30.00")


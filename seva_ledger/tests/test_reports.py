"""
Unit Tests for Dashboard and Pending-Work Figures

Tests cover:
1. Daily and monthly profit windows
2. Pending totals and their agreement with the pending-work view
3. Cash deposit/withdrawal flow for the day
4. Recompute-on-read behaviour
"""

import os
import time

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from seva_ledger.models import PaymentMode, RecordTransactionRequest, TransactionStatus
from seva_ledger.reports import ReportService, start_of_day, start_of_month
from seva_ledger.service import LedgerService


NOW = datetime(2024, 7, 22, 15, 30).astimezone()


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def at(day: int, hour: int, month: int = 7) -> datetime:
    return datetime(2024, month, day, hour, 0).astimezone()


def record(ledger: LedgerService, clock: FakeClock, when: datetime, **fields):
    clock.now = when
    fields.setdefault("payment_mode", PaymentMode.CASH)
    transaction = ledger.record_transaction(RecordTransactionRequest(**fields))
    clock.now = NOW
    return transaction


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def ledger(clock):
    return LedgerService(clock=clock)


@pytest.fixture
def populated(ledger, clock):
    """A month of activity around 22 July 2024."""
    ledger.directory.add_customer({"name": "Amit Kumar", "mobileNumber": "9876543210", "address": "123, Main St, Delhi"})
    ledger.directory.add_customer({"name": "Priya Sharma", "mobileNumber": "8765432109", "address": "456, Park Avenue, Mumbai"})

    # Last month: outside both windows
    record(ledger, clock, at(30, 12, month=6), service_code="KYC", price=30, total_charge=30, amount_paid=30)
    # Earlier this month
    record(ledger, clock, at(5, 10), service_code="AADHAAR_PRINT", qty=2, price=10, cost=2,
           total_charge=20, amount_paid=20)
    record(ledger, clock, at(5, 11), service_code="LAMINATION", price=30, cost=15,
           total_charge=30, amount_paid=0)
    # Yesterday, just before midnight
    record(ledger, clock, at(21, 23), service_code="CASH_DEPOSIT", price=10,
           cash_transaction_amount=1000, cash_transaction_bank_name="HDFC Bank")
    # Today
    ayushman = record(ledger, clock, at(22, 9), service_code="AYUSHMAN_CARD", price=50,
                      total_charge=50, amount_paid=20, payment_mode=PaymentMode.UPI)
    record(ledger, clock, at(22, 10), service_code="CASH_DEPOSIT", price=10,
           cash_transaction_amount=5000, cash_transaction_bank_name="State Bank of India")
    record(ledger, clock, at(22, 11), service_code="CASH_WITHDRAWAL", price=10,
           cash_transaction_amount=2000, cash_transaction_bank_name="State Bank of India")
    record(ledger, clock, at(22, 12), service_code="PRINT_BW", qty=5, price=2, cost=1,
           total_charge=10, amount_paid=10)
    return ayushman


class TestDayBoundaries:
    """Tests for the window helpers."""

    def test_start_of_day(self):
        assert start_of_day(NOW) == datetime(2024, 7, 22).astimezone()

    def test_start_of_month(self):
        assert start_of_month(NOW) == datetime(2024, 7, 1).astimezone()


class TestDashboardStats:
    """Tests for the dashboard summary."""

    def test_empty_ledger(self, ledger):
        """Test every figure defaults to zero."""
        reports = ReportService(ledger)

        stats = reports.compute_dashboard_stats(NOW)

        assert stats.daily_profit == Decimal("0")
        assert stats.monthly_profit == Decimal("0")
        assert stats.total_pending_amount == Decimal("0")
        assert stats.total_customers == 0
        assert stats.services_today == 0
        assert stats.daily_net_cash == Decimal("0")

    def test_figures(self, ledger, populated):
        """Test each figure against a hand-computed month."""
        reports = ReportService(ledger)

        stats = reports.compute_dashboard_stats(NOW)

        # Paid today: deposit fee 10 + withdrawal fee 10 + prints 5
        assert stats.daily_profit == Decimal("25")
        # Plus yesterday's deposit fee 10 and the Aadhaar prints 16
        assert stats.monthly_profit == Decimal("51")
        # Lamination 30 + Ayushman 30
        assert stats.total_pending_amount == Decimal("60")
        assert stats.total_customers == 2
        assert stats.services_today == 4
        assert stats.daily_deposit == Decimal("5000")
        assert stats.daily_withdrawal == Decimal("2000")
        assert stats.daily_net_cash == Decimal("3000")

    def test_settlement_moves_profit_into_today(self, ledger, populated):
        """Test a settled record counts its full profit."""
        reports = ReportService(ledger)

        ledger.settle_transaction(populated.id)
        stats = reports.compute_dashboard_stats(NOW)

        assert stats.daily_profit == Decimal("75")
        assert stats.total_pending_amount == Decimal("30")

    def test_default_now_uses_clock(self, ledger, populated):
        """Test the injected clock stands in for an omitted timestamp."""
        reports = ReportService(ledger)

        assert reports.compute_dashboard_stats() == reports.compute_dashboard_stats(NOW)

    def test_naive_now_is_local_time(self, ledger, populated):
        """Test a naive timestamp is read as local time."""
        reports = ReportService(ledger)

        naive = reports.compute_dashboard_stats(datetime(2024, 7, 22, 15, 30))

        assert naive == reports.compute_dashboard_stats(NOW)

    def test_repeated_calls_agree(self, ledger, populated):
        """Test two reads with no writes in between are identical."""
        reports = ReportService(ledger)

        assert reports.compute_dashboard_stats(NOW) == reports.compute_dashboard_stats(NOW)

    def test_new_writes_are_visible(self, ledger, clock, populated):
        """Test figures are recomputed rather than cached."""
        reports = ReportService(ledger)
        before = reports.compute_dashboard_stats(NOW)

        record(ledger, clock, at(22, 14), service_code="PAN_CARD", price=50,
               total_charge=50, amount_paid=50)
        after = reports.compute_dashboard_stats(NOW)

        assert after.services_today == before.services_today + 1
        assert after.daily_profit == before.daily_profit + Decimal("50")


class TestPendingWork:
    """Tests for the pending-work figures."""

    def test_total_matches_dashboard(self, ledger, populated):
        """Test both pending figures come from the same sum."""
        reports = ReportService(ledger)

        assert reports.compute_pending_work_total() == reports.compute_dashboard_stats(NOW).total_pending_amount
        assert reports.compute_pending_work_total() == Decimal("60")

    def test_pending_work_view(self, ledger, populated):
        """Test the view lists only pending records, newest first."""
        reports = ReportService(ledger)

        view = reports.list_pending_work()

        assert view.total_count == 2
        assert view.total_pending_amount == Decimal("60")
        assert [t.service_code for t in view.transactions] == ["AYUSHMAN_CARD", "LAMINATION"]
        assert all(t.status == TransactionStatus.PENDING for t in view.transactions)

    def test_empty_pending_work(self, ledger):
        reports = ReportService(ledger)

        assert reports.compute_pending_work_total() == Decimal("0")
        assert reports.list_pending_work().transactions == []


# US Eastern rules as a POSIX TZ string so no tz database is needed
EASTERN_TZ = "EST5EDT,M3.2.0,M11.1.0"
EST = timezone(timedelta(hours=-5))
EDT = timezone(timedelta(hours=-4))


@pytest.fixture
def eastern_time():
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    original = os.environ.get("TZ")
    os.environ["TZ"] = EASTERN_TZ
    time.tzset()
    yield
    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()


class TestClockChanges:
    """Tests for day windows on days when local clocks move."""

    def test_midnight_before_spring_forward(self, eastern_time):
        noon = datetime(2026, 3, 8, 12, 0, tzinfo=EDT)

        assert start_of_day(noon) == datetime(2026, 3, 8, 0, 0, tzinfo=EST)
        assert start_of_month(noon) == datetime(2026, 3, 1, 0, 0, tzinfo=EST)

    def test_midnight_before_fall_back(self, eastern_time):
        noon = datetime(2026, 11, 1, 12, 0, tzinfo=EST)

        assert start_of_day(noon) == datetime(2026, 11, 1, 0, 0, tzinfo=EDT)

    def test_yesterday_excluded_on_spring_forward(self, eastern_time):
        """Test a late transaction from the previous evening is not counted today."""
        clock = FakeClock(datetime(2026, 3, 8, 12, 0, tzinfo=EDT))
        ledger = LedgerService(clock=clock)
        record(ledger, clock, datetime(2026, 3, 7, 23, 30, tzinfo=EST), service_code="KYC",
               price=30, total_charge=30, amount_paid=30)
        record(ledger, clock, datetime(2026, 3, 8, 0, 30, tzinfo=EST), service_code="PRINT_BW",
               qty=5, price=2, cost=1, total_charge=10, amount_paid=10)

        stats = ReportService(ledger).compute_dashboard_stats(datetime(2026, 3, 8, 12, 0, tzinfo=EDT))

        assert stats.services_today == 1
        assert stats.daily_profit == Decimal("5")
        assert stats.monthly_profit == Decimal("35")


class TestCashMovements:
    """Tests for the cash deposit/withdrawal listing."""

    def test_lists_only_cash_movements(self, ledger, populated):
        movements = ReportService(ledger).list_cash_movements()

        assert [t.service_code for t in movements] == ["CASH_WITHDRAWAL", "CASH_DEPOSIT", "CASH_DEPOSIT"]

    def test_filter_by_day(self, ledger, populated):
        movements = ReportService(ledger).list_cash_movements(on=date(2024, 7, 21))

        assert len(movements) == 1
        assert movements[0].cash_transaction_amount == Decimal("1000")

    def test_search_by_name_or_mobile(self, ledger, clock, populated):
        customer = ledger.directory.add_customer({
            "name": "Sunita Devi",
            "mobileNumber": "9988776655",
            "address": "12, Station Road, Patna",
        })
        record(ledger, clock, at(22, 13), service_code="CASH_WITHDRAWAL", price=10,
               customer_id=customer.id, cash_transaction_amount=700,
               cash_transaction_bank_name="Punjab National Bank")
        reports = ReportService(ledger)

        assert [t.customer_id for t in reports.list_cash_movements(search="sunita")] == [customer.id]
        assert [t.customer_id for t in reports.list_cash_movements(search="8877")] == [customer.id]
        assert len(reports.list_cash_movements(search="Walk-in")) == 3
        assert reports.list_cash_movements(search="Ramesh") == []

    def test_search_and_day_combined(self, ledger, populated):
        movements = ReportService(ledger).list_cash_movements(search="walk-in", on=date(2024, 7, 22))

        assert [t.cash_transaction_amount for t in movements] == [Decimal("2000"), Decimal("5000")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

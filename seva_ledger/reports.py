"""
Dashboard and pending-work figures.

Everything here is recomputed from the stored ledger on every call; nothing
is cached between calls, so figures always agree with the persisted records.
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional

from .models import CashTransactionType, DashboardStats, PendingWorkResponse, Transaction, TransactionStatus
from .service import LedgerService

logger = logging.getLogger(__name__)


def local_midnight(day: date) -> datetime:
    """Midnight of ``day`` in local time, with the offset in force at that moment."""
    return datetime.combine(day, time.min).astimezone()


def start_of_day(moment: datetime) -> datetime:
    return local_midnight(moment.astimezone().date())


def start_of_month(moment: datetime) -> datetime:
    return local_midnight(moment.astimezone().date().replace(day=1))


def pending_total(transactions: Iterable[Transaction]) -> Decimal:
    return sum(
        (t.pending_amount for t in transactions if t.status == TransactionStatus.PENDING),
        Decimal("0"),
    )


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0"))


class ReportService:
    def __init__(self, ledger: Optional[LedgerService] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.ledger = ledger or LedgerService()
        self.clock = clock or self.ledger.clock

    def compute_dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        # naive datetimes are taken as local time
        now = (now or self.clock()).astimezone()
        today = start_of_day(now)
        month_start = start_of_month(now)

        transactions = self.ledger.list_transactions()
        paid = [t for t in transactions if t.status == TransactionStatus.PAID]
        todays = [t for t in transactions if t.created_at.astimezone() >= today]

        daily_deposit = _sum(
            t.cash_transaction_amount for t in todays
            if t.cash_transaction_type == CashTransactionType.DEPOSIT and t.cash_transaction_amount is not None
        )
        daily_withdrawal = _sum(
            t.cash_transaction_amount for t in todays
            if t.cash_transaction_type == CashTransactionType.WITHDRAWAL and t.cash_transaction_amount is not None
        )

        stats = DashboardStats(
            daily_profit=_sum(t.profit for t in paid if t.created_at.astimezone() >= today),
            monthly_profit=_sum(t.profit for t in paid if t.created_at.astimezone() >= month_start),
            total_pending_amount=pending_total(transactions),
            total_customers=self.ledger.directory.count(),
            services_today=len(todays),
            daily_deposit=daily_deposit,
            daily_withdrawal=daily_withdrawal,
            daily_net_cash=daily_deposit - daily_withdrawal,
        )
        logger.debug("Dashboard stats for %s: %s", today.date(), stats)
        return stats

    def compute_pending_work_total(self) -> Decimal:
        return pending_total(self.ledger.list_transactions(TransactionStatus.PENDING))

    def list_pending_work(self) -> PendingWorkResponse:
        transactions = self.ledger.list_transactions(TransactionStatus.PENDING)
        return PendingWorkResponse(
            transactions=transactions,
            total_count=len(transactions),
            total_pending_amount=pending_total(transactions),
        )

    def list_cash_movements(self, search: Optional[str] = None, on: Optional[date] = None) -> list[Transaction]:
        """Cash deposits and withdrawals, newest first.

        ``search`` matches the customer name (case-insensitive) or any part of
        the mobile number. ``on`` keeps only records from that local day.
        """
        movements = [t for t in self.ledger.list_transactions() if t.is_cash_movement]
        if search:
            needle = search.strip().lower()
            movements = [
                t for t in movements
                if needle in (t.customer_name or "").lower() or needle in (t.customer_mobile or "")
            ]
        if on is not None:
            start, end = local_midnight(on), local_midnight(on + timedelta(days=1))
            movements = [t for t in movements if start <= t.created_at.astimezone() < end]
        return movements

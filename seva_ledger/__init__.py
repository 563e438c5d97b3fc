"""
Back-office ledger for a village service centre

This module provides:
- Customer directory and seeded service catalog
- Transaction ledger with charge, pending-amount and status derivation
- Proportional profit recognition and one-way PENDING → PAID settlement
- Cash deposit/withdrawal tracking for walk-in customers
- Dashboard and pending-work figures recomputed from the ledger
"""

from .catalog import ServiceCatalog
from .directory import CustomerDirectory
from .exceptions import (
    InvalidStateError,
    LedgerServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .models import (
    CashTransactionType,
    Customer,
    DashboardStats,
    PaymentMode,
    RecordTransactionRequest,
    Service,
    ServiceCategory,
    ServiceKind,
    Transaction,
    TransactionStatus,
)
from .reports import ReportService
from .service import LedgerService
from .storage import DynamoDBStorage, InMemoryStorage

__all__ = [
    "CashTransactionType",
    "Customer",
    "CustomerDirectory",
    "DashboardStats",
    "DynamoDBStorage",
    "InMemoryStorage",
    "InvalidStateError",
    "LedgerService",
    "LedgerServiceError",
    "NotFoundError",
    "PaymentMode",
    "RecordTransactionRequest",
    "ReportService",
    "Service",
    "ServiceCatalog",
    "ServiceCategory",
    "ServiceKind",
    "StorageError",
    "Transaction",
    "TransactionStatus",
    "ValidationError",
]

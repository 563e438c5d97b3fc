import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Mapping, Optional, Union
from uuid import uuid4

from .catalog import ServiceCatalog
from .directory import CustomerDirectory
from .exceptions import (
    InvalidStateError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from .models import (
    CASH_MOVEMENT_TYPES,
    Customer,
    RecordTransactionRequest,
    Service,
    Transaction,
    TransactionStatus,
)
from .storage import SERVICES, TRANSACTIONS, InMemoryStorage, Precondition
from .validation import parse_request

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
WALK_IN_NAME = "Walk-in Customer"


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def recognized_profit(total_charge: Decimal, amount_paid: Decimal, potential_profit: Decimal) -> Decimal:
    """Profit earned so far, proportional to the share of the charge collected."""
    if total_charge > 0:
        return to_money(amount_paid / total_charge * potential_profit)
    return to_money(potential_profit)


class LedgerService:
    def __init__(self, storage=None, catalog: Optional[ServiceCatalog] = None,
                 directory: Optional[CustomerDirectory] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage or InMemoryStorage()
        self.clock = clock or (lambda: datetime.now().astimezone())
        self.catalog = catalog or ServiceCatalog(self.storage, self.clock)
        self.directory = directory or CustomerDirectory(self.storage, self.clock)

    def record_transaction(self, data: Union[RecordTransactionRequest, Mapping],
                           customer: Optional[Customer] = None) -> Transaction:
        request = parse_request(RecordTransactionRequest, data)
        if request.amount_paid > request.total_charge:
            logger.warning("Rejected %s: amount paid %s exceeds total charge %s",
                           request.service_code, request.amount_paid, request.total_charge,
                           extra={"service_code": request.service_code})
            raise ValidationError("amount paid cannot exceed total charge", field="amountPaid")

        service = self.catalog.get_active_service(request.service_code)
        if service is None:
            logger.warning("Rejected transaction for unknown service %s", request.service_code,
                           extra={"service_code": request.service_code})
            raise NotFoundError("invalid service")
        request = self._with_catalog_defaults(request, service)

        if customer is None and request.customer_id:
            customer = self.directory.get_customer_by_id(request.customer_id)
            if customer is None:
                logger.info("Customer %s not found, recording as walk-in", request.customer_id,
                            extra={"customer_id": request.customer_id})

        fields = self._derive(request, service)
        fields.update(self._customer_fields(request, customer, service))

        transaction = Transaction(
            id=f"txn_{uuid4().hex}",
            created_at=self.clock(),
            service_code=service.code,
            service_name=service.name,
            payment_mode=request.payment_mode,
            notes=request.notes,
            **fields,
        )

        try:
            self.storage.insert(
                TRANSACTIONS, transaction.id, transaction.to_document(),
                require=Precondition(SERVICES, service.code, {"active": True}),
            )
        except PreconditionFailedError as e:
            logger.warning("Service %s went away before transaction could be stored", service.code,
                           extra={"service_code": service.code})
            raise NotFoundError("invalid service") from e

        logger.info("Recorded transaction %s: %s x%d, charge %s, paid %s, status %s",
                    transaction.id, service.code, transaction.qty, transaction.total_charge,
                    transaction.amount_paid, transaction.status,
                    extra={"transaction_id": transaction.id, "service_code": service.code,
                           "customer_id": transaction.customer_id})
        return transaction

    def settle_transaction(self, transaction_id: str, strict: bool = False) -> Transaction:
        transaction = self.get_transaction(transaction_id)
        if not transaction.can_settle():
            if strict:
                raise InvalidStateError(f"Cannot settle transaction in {transaction.status} state")
            return transaction

        changes = {
            "amountPaid": transaction.total_charge,
            "pendingAmount": ZERO,
            "status": TransactionStatus.PAID.value,
            "profit": to_money(transaction.potential_profit),
            "settledAt": self.clock(),
        }
        try:
            document = self.storage.update(
                TRANSACTIONS, transaction_id, changes,
                expected={"status": TransactionStatus.PENDING.value},
            )
        except PreconditionFailedError:
            # Settled concurrently; report whatever is stored now
            settled = self.get_transaction(transaction_id)
            if strict:
                raise InvalidStateError(f"Cannot settle transaction in {settled.status} state")
            return settled

        logger.info("Settled transaction %s, collected %s", transaction_id,
                    transaction.total_charge - transaction.amount_paid,
                    extra={"transaction_id": transaction_id})
        return Transaction.model_validate(document)

    def get_transaction(self, transaction_id: str) -> Transaction:
        document = self.storage.get(TRANSACTIONS, transaction_id)
        if not document:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return Transaction.model_validate(document)

    def list_transactions(self, status: Optional[Union[TransactionStatus, str]] = None) -> list[Transaction]:
        transactions = [Transaction.model_validate(d) for d in self.storage.scan(TRANSACTIONS)]
        if status is not None:
            status = TransactionStatus(status)
            transactions = [t for t in transactions if t.status == status]
        transactions.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return transactions

    def _with_catalog_defaults(self, request: RecordTransactionRequest, service: Service) -> RecordTransactionRequest:
        defaults = {
            "price": service.default_price,
            "cost": service.default_cost,
            "partner_fee": service.default_partner_fee,
        }
        missing = {name: value for name, value in defaults.items() if name not in request.model_fields_set}
        return request.model_copy(update=missing) if missing else request

    def _derive(self, request: RecordTransactionRequest, service: Service) -> dict:
        if service.is_cash_movement:
            return self._derive_cash_movement(request, service)

        total_charge = request.total_charge
        amount_paid = request.amount_paid
        pending_amount = total_charge - amount_paid
        potential_profit = request.qty * (request.price - request.cost - request.partner_fee)
        return {
            "qty": request.qty,
            "price": request.price,
            "cost": request.cost,
            "partner_fee": request.partner_fee,
            "total_charge": total_charge,
            "amount_paid": amount_paid,
            "pending_amount": pending_amount,
            "status": TransactionStatus.PAID if pending_amount == 0 else TransactionStatus.PENDING,
            "profit": recognized_profit(total_charge, amount_paid, potential_profit),
        }

    def _derive_cash_movement(self, request: RecordTransactionRequest, service: Service) -> dict:
        amount = request.cash_transaction_amount
        if amount is None or amount <= 0:
            raise ValidationError("cashTransactionAmount: cash amount must be a positive number",
                                  field="cashTransactionAmount")
        bank_name = request.cash_transaction_bank_name
        if bank_name is None or len(bank_name) < 2:
            raise ValidationError("cashTransactionBankName: bank name is required",
                                  field="cashTransactionBankName")

        return {
            "qty": 1,
            "price": request.price,
            "cost": ZERO,
            "partner_fee": ZERO,
            "total_charge": request.price,
            "amount_paid": request.price,
            "pending_amount": ZERO,
            "status": TransactionStatus.PAID,
            "profit": request.price,
            "cash_transaction_amount": amount,
            "cash_transaction_type": CASH_MOVEMENT_TYPES[service.code],
            "cash_transaction_bank_name": bank_name,
        }

    def _customer_fields(self, request: RecordTransactionRequest, customer: Optional[Customer],
                         service: Service) -> dict:
        if customer is not None:
            return {
                "customer_id": customer.id,
                "customer_name": customer.name,
                "customer_mobile": customer.mobile_number,
            }
        return {
            "customer_id": None,
            "customer_name": request.customer_name or (WALK_IN_NAME if service.is_cash_movement else None),
            "customer_mobile": request.customer_mobile,
        }

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class ServiceCategory(str, Enum):
    BANKING = "BANKING"
    G2C = "G2C"
    PRINT = "PRINT"
    DOC = "DOC"
    OTHER = "OTHER"


class ServiceKind(str, Enum):
    REGULAR = "REGULAR"
    CASH_MOVEMENT = "CASH_MOVEMENT"


class TransactionStatus(str, Enum):
    PAID = "PAID"
    PENDING = "PENDING"


class PaymentMode(str, Enum):
    CASH = "CASH"
    UPI = "UPI"
    BANK = "BANK"


class CashTransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


CASH_DEPOSIT = "CASH_DEPOSIT"
CASH_WITHDRAWAL = "CASH_WITHDRAWAL"

CASH_MOVEMENT_TYPES = {
    CASH_DEPOSIT: CashTransactionType.DEPOSIT,
    CASH_WITHDRAWAL: CashTransactionType.WITHDRAWAL,
}

MOBILE_PATTERN = r"^\d{10}$"


class Document(BaseModel):
    """Stored shape: camelCase field names, enum values as plain strings."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        from_attributes=True,
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Request(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CreateCustomerRequest(Request):
    name: str = Field(..., min_length=2, description="Name must be at least 2 characters")
    mobile_number: str = Field(..., pattern=MOBILE_PATTERN, description="Mobile number must be 10 digits")
    address: str = Field(..., min_length=5, description="Address must be at least 5 characters")
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Amit Kumar",
            "mobileNumber": "9876543210",
            "address": "123, Main St, Delhi",
            "bankName": "State Bank of India",
            "accountNumber": "12345678901",
            "ifscCode": "SBIN0001234",
        }
    })


class RecordTransactionRequest(Request):
    service_code: str = Field(..., min_length=1, description="Catalog code of the service rendered")
    customer_id: Optional[str] = None
    qty: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    cost: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    partner_fee: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    total_charge: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    payment_mode: PaymentMode
    notes: Optional[str] = None

    # Walk-in details, used only when no customer record resolves
    customer_name: Optional[str] = Field(default=None, min_length=2)
    customer_mobile: Optional[str] = Field(default=None, pattern=MOBILE_PATTERN)

    # Checked once the service is known to be a cash-movement one
    cash_transaction_amount: Optional[Decimal] = None
    cash_transaction_bank_name: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "serviceCode": "AADHAAR_PRINT",
            "customerId": "cust_1",
            "qty": 2,
            "price": 10,
            "cost": 2,
            "partnerFee": 0,
            "totalCharge": 20,
            "amountPaid": 20,
            "paymentMode": "CASH",
        }
    })

    @field_validator("customer_id", "notes", "customer_name", "customer_mobile", "cash_transaction_bank_name", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Customer(Document):
    id: str
    name: str
    mobile_number: str
    address: str
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    created_at: datetime


class Service(Document):
    code: str
    name: str
    category: ServiceCategory
    kind: ServiceKind = ServiceKind.REGULAR
    default_price: Decimal = Decimal("0")
    default_cost: Decimal = Decimal("0")
    default_partner_fee: Decimal = Decimal("0")
    active: bool = True
    created_at: datetime

    @property
    def is_cash_movement(self) -> bool:
        return self.kind == ServiceKind.CASH_MOVEMENT


class Transaction(Document):
    id: str
    created_at: datetime
    service_code: str
    service_name: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_mobile: Optional[str] = None
    qty: int
    price: Decimal
    cost: Decimal
    partner_fee: Decimal
    total_charge: Decimal
    amount_paid: Decimal
    pending_amount: Decimal
    status: TransactionStatus
    profit: Decimal
    payment_mode: PaymentMode
    notes: Optional[str] = None
    cash_transaction_amount: Optional[Decimal] = None
    cash_transaction_type: Optional[CashTransactionType] = None
    cash_transaction_bank_name: Optional[str] = None
    settled_at: Optional[datetime] = None

    @property
    def is_cash_movement(self) -> bool:
        return self.cash_transaction_type is not None

    @property
    def potential_profit(self) -> Decimal:
        if self.is_cash_movement:
            return self.price
        return self.qty * (self.price - self.cost - self.partner_fee)

    def can_settle(self) -> bool:
        return self.status == TransactionStatus.PENDING


class DashboardStats(BaseModel):
    daily_profit: Decimal = Decimal("0")
    monthly_profit: Decimal = Decimal("0")
    total_pending_amount: Decimal = Decimal("0")
    total_customers: int = 0
    services_today: int = 0
    daily_deposit: Decimal = Decimal("0")
    daily_withdrawal: Decimal = Decimal("0")
    daily_net_cash: Decimal = Decimal("0")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PendingWorkResponse(BaseModel):
    transactions: list[Transaction]
    total_count: int
    total_pending_amount: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

import logging
from datetime import datetime
from typing import Callable, Mapping, Optional, Union
from uuid import uuid4

from .models import CreateCustomerRequest, Customer
from .storage import CUSTOMERS, InMemoryStorage
from .validation import parse_request

logger = logging.getLogger(__name__)


class CustomerDirectory:
    def __init__(self, storage=None, clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage or InMemoryStorage()
        self.clock = clock or (lambda: datetime.now().astimezone())

    def add_customer(self, data: Union[CreateCustomerRequest, Mapping]) -> Customer:
        request = parse_request(CreateCustomerRequest, data)
        customer = Customer(
            id=f"cust_{uuid4().hex}",
            created_at=self.clock(),
            **request.model_dump(),
        )
        self.storage.insert(CUSTOMERS, customer.id, customer.to_document())
        logger.info("Registered customer %s", customer.id, extra={"customer_id": customer.id})
        return customer

    def get_customers(self) -> list[Customer]:
        customers = [Customer.model_validate(d) for d in self.storage.scan(CUSTOMERS)]
        customers.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return customers

    def get_customer_by_id(self, customer_id: str) -> Optional[Customer]:
        document = self.storage.get(CUSTOMERS, customer_id)
        return Customer.model_validate(document) if document else None

    def count(self) -> int:
        return self.storage.count(CUSTOMERS)

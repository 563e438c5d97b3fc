import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from .models import (
    CASH_DEPOSIT,
    CASH_WITHDRAWAL,
    Service,
    ServiceCategory,
    ServiceKind,
)
from .storage import SERVICES, InMemoryStorage

logger = logging.getLogger(__name__)


# (code, name, category, price, cost)
SEED_SERVICES = [
    (CASH_DEPOSIT, "Cash Deposit", ServiceCategory.BANKING, "10", "0"),
    (CASH_WITHDRAWAL, "Cash Withdrawal", ServiceCategory.BANKING, "10", "0"),
    ("AIRTEL_ACCOUNT", "Airtel Account", ServiceCategory.BANKING, "0", "0"),
    ("FINO_ACCOUNT", "Fino Account", ServiceCategory.BANKING, "0", "0"),
    ("KOTAK_ACCOUNT", "Kotak Account", ServiceCategory.BANKING, "0", "0"),
    ("AADHAAR_PRINT", "Aadhaar Print", ServiceCategory.PRINT, "10", "2"),
    ("AYUSHMAN_CARD", "Ayushman Card", ServiceCategory.G2C, "50", "0"),
    ("ESHRAM_CARD", "eShram Card", ServiceCategory.G2C, "20", "0"),
    ("SAMAGRAH", "Samagrah", ServiceCategory.G2C, "20", "0"),
    ("KYC", "KYC", ServiceCategory.BANKING, "30", "0"),
    ("LIFE_CERT", "Life Certificate", ServiceCategory.G2C, "50", "0"),
    ("PRINT_BW", "Print Out B/W (per page)", ServiceCategory.PRINT, "2", "1"),
    ("PRINT_COLOR", "Print Out Color (per page)", ServiceCategory.PRINT, "10", "5"),
    ("LAMINATION", "Lamination", ServiceCategory.DOC, "30", "15"),
    ("INCOME_CERT", "Income Certificate", ServiceCategory.G2C, "50", "0"),
    ("DOMESTIC_CERT", "Domestic Certificate", ServiceCategory.G2C, "50", "0"),
    ("RESUME", "Resume Making", ServiceCategory.DOC, "50", "0"),
    ("POLICE_VERIFICATION", "Police Verification", ServiceCategory.G2C, "100", "0"),
    ("PAN_CARD", "PAN Card", ServiceCategory.G2C, "50", "0"),
    ("OTHER", "Other", ServiceCategory.OTHER, "0", "0"),
]

CASH_MOVEMENT_CODES = {CASH_DEPOSIT, CASH_WITHDRAWAL}


def build_seed_services(now: datetime) -> list[Service]:
    return [
        Service(
            code=code,
            name=name,
            category=category,
            kind=ServiceKind.CASH_MOVEMENT if code in CASH_MOVEMENT_CODES else ServiceKind.REGULAR,
            default_price=Decimal(price),
            default_cost=Decimal(cost),
            default_partner_fee=Decimal("0"),
            active=True,
            created_at=now,
        )
        for code, name, category, price, cost in SEED_SERVICES
    ]


class ServiceCatalog:
    def __init__(self, storage=None, clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage or InMemoryStorage()
        self.clock = clock or (lambda: datetime.now().astimezone())
        self._seeded = False

    def seed(self) -> int:
        """Populate an empty catalog with the standard services; returns how many were added."""
        if self.storage.count(SERVICES) > 0:
            self._seeded = True
            return 0
        services = build_seed_services(self.clock())
        for service in services:
            self.storage.insert(SERVICES, service.code, service.to_document())
        self._seeded = True
        logger.info("Seeded service catalog with %d entries", len(services))
        return len(services)

    def ensure_seeded(self) -> None:
        if not self._seeded:
            self.seed()

    def get_services(self) -> list[Service]:
        self.ensure_seeded()
        services = [Service.model_validate(d) for d in self.storage.scan(SERVICES)]
        return [s for s in services if s.active]

    def get_service_by_code(self, code: str) -> Optional[Service]:
        self.ensure_seeded()
        document = self.storage.get(SERVICES, code)
        return Service.model_validate(document) if document else None

    def get_active_service(self, code: str) -> Optional[Service]:
        service = self.get_service_by_code(code)
        if service is None or not service.active:
            return None
        return service

from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import ServiceCatalog
from .config import Settings, build_storage
from .directory import CustomerDirectory
from .logging import setup_logging
from .models import (
    CreateCustomerRequest, Customer, DashboardStats, PendingWorkResponse,
    RecordTransactionRequest, Service, Transaction, TransactionStatus,
)
from .reports import ReportService
from .service import LedgerService
from .validation import first_error
from .exceptions import (
    LedgerServiceError, NotFoundError, StorageError, ValidationError,
)

settings = Settings.from_env()
setup_logging(settings.log_level, settings.log_format)

storage = build_storage(settings)
catalog = ServiceCatalog(storage)
directory = CustomerDirectory(storage)
ledger_service = LedgerService(storage, catalog=catalog, directory=directory)
report_service = ReportService(ledger_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.seed_catalog:
        catalog.seed()
    yield


app = FastAPI(
    title="Seva Ledger API",
    description="Back office for a service centre: customers, billable services, cash deposits/withdrawals and dashboard figures",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _validation_response(error: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(error), "field": error.field},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _validation_response(first_error(exc))


@app.exception_handler(ValidationError)
async def ledger_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _validation_response(exc)


def _raise_http(e: LedgerServiceError):
    if isinstance(e, ValidationError):
        raise e
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, StorageError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "seva-ledger"}


@app.get("/customers", response_model=list[Customer], tags=["Customers"])
def list_customers() -> list[Customer]:
    return directory.get_customers()


@app.post("/customers", response_model=Customer, status_code=status.HTTP_201_CREATED, tags=["Customers"])
def create_customer(request: CreateCustomerRequest) -> Customer:
    try:
        return directory.add_customer(request)
    except LedgerServiceError as e:
        _raise_http(e)


@app.get("/customers/{customer_id}", response_model=Customer, tags=["Customers"])
def get_customer(customer_id: str) -> Customer:
    customer = directory.get_customer_by_id(customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer {customer_id} not found")
    return customer


@app.get("/services", response_model=list[Service], tags=["Services"])
def list_services() -> list[Service]:
    return catalog.get_services()


@app.get("/services/{code}", response_model=Service, tags=["Services"])
def get_service(code: str) -> Service:
    service = catalog.get_service_by_code(code)
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Service {code} not found")
    return service


@app.get("/transactions", response_model=list[Transaction], tags=["Transactions"])
def list_transactions(status: Optional[TransactionStatus] = None) -> list[Transaction]:
    return ledger_service.list_transactions(status)


@app.post("/transactions", response_model=Transaction, status_code=status.HTTP_201_CREATED, tags=["Transactions"])
def record_transaction(request: RecordTransactionRequest) -> Transaction:
    try:
        return ledger_service.record_transaction(request)
    except LedgerServiceError as e:
        _raise_http(e)


@app.get("/transactions/{transaction_id}", response_model=Transaction, tags=["Transactions"])
def get_transaction(transaction_id: str) -> Transaction:
    try:
        return ledger_service.get_transaction(transaction_id)
    except LedgerServiceError as e:
        _raise_http(e)


@app.post("/transactions/{transaction_id}/settle", response_model=Transaction, tags=["Transactions"])
def settle_transaction(transaction_id: str) -> Transaction:
    try:
        return ledger_service.settle_transaction(transaction_id)
    except LedgerServiceError as e:
        _raise_http(e)


@app.get("/dashboard", response_model=DashboardStats, tags=["Reports"])
def dashboard() -> DashboardStats:
    return report_service.compute_dashboard_stats()


@app.get("/pending-work", response_model=PendingWorkResponse, tags=["Reports"])
def pending_work() -> PendingWorkResponse:
    return report_service.list_pending_work()


@app.get("/cash-movements", response_model=list[Transaction], tags=["Reports"])
def cash_movements(search: Optional[str] = None, on: Optional[date] = None) -> list[Transaction]:
    return report_service.list_cash_movements(search=search, on=on)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

from typing import Optional


class LedgerServiceError(Exception):
    pass


class ValidationError(LedgerServiceError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerServiceError):
    pass


class InvalidStateError(LedgerServiceError):
    pass


class ConfigurationError(LedgerServiceError):
    pass


class StorageError(LedgerServiceError, IOError):
    pass


class PreconditionFailedError(StorageError):
    pass

"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Uploaded file or request failed an intake constraint"""

    def __init__(self, message: str, constraint: str):
        super().__init__(message)
        self.constraint = constraint


class ExtractionError(DomainException):
    """No usable text could be recovered from the uploaded file"""

    pass


class UpstreamServiceError(DomainException):
    """Language model API failed or returned output outside the contract"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NoValidRecordsError(UpstreamServiceError):
    """Every record returned by the language model failed validation"""

    pass


class PersistenceError(DomainException):
    """Database write failed"""

    pass


class NotFoundError(DomainException):
    """Referenced entity does not exist"""

    pass


class ReconciliationError(DomainException):
    """Payment link violates a reconciliation rule"""

    pass

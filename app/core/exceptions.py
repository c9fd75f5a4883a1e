from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StudentValidationError(ServiceError):
    """Candidate student failed required-field checks. `errors` lists every violation."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__(", ".join(errors), status.HTTP_400_BAD_REQUEST)
        self.errors = errors


class StructuralInputError(ServiceError):
    """Raw import payload could not be parsed as a table. Aborts the whole import."""

    def __init__(self, diagnostics: List[Dict[str, Any]], message: str = "CSV parsing error") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.diagnostics = diagnostics


class RowValidationError(Exception):
    """One import row failed validation; recorded against the row, never raised past it."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StoragePersistError(Exception):
    """A validated row could not be read from or written to the store."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ImageTransferError(Exception):
    """Photo could not be moved to permanent storage. Callers treat it as non-fatal."""

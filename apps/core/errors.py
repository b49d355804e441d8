"""
Error normalization for the HTTP API.

Every failure that escapes an endpoint is turned into an ApiError exactly
once, at the request boundary, by the handlers installed with
register_exception_handlers(). Endpoints and services may raise ApiError
themselves; those pass through untouched.

Database failures are first classified into a StorageFault tag by
classify_storage_error(), then mapped through FAULT_ERRORS. Only the
persistence boundary looks at driver exception types.

Response body:
    {"code": "not_found", "message": "Resource not found", "details": null}
"""
import logging
from enum import Enum
from typing import Any, Optional, Tuple

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import (
    DatabaseError,
    DataError,
    IntegrityError,
    InterfaceError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
)
from django.http import Http404
from ninja.errors import AuthenticationError, HttpError
from ninja.errors import ValidationError as NinjaValidationError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    UNAUTHENTICATED = 'unauthenticated'
    INVALID_ARGUMENT = 'invalid_argument'
    NOT_FOUND = 'not_found'
    ALREADY_EXISTS = 'already_exists'
    UNAVAILABLE = 'unavailable'
    DEADLINE_EXCEEDED = 'deadline_exceeded'
    UNIMPLEMENTED = 'unimplemented'
    INTERNAL = 'internal'


HTTP_STATUS = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.UNAVAILABLE: 503,
    ErrorCode.DEADLINE_EXCEEDED: 504,
    ErrorCode.UNIMPLEMENTED: 501,
    ErrorCode.INTERNAL: 500,
}

INTERNAL_MESSAGE = "An unexpected error occurred"


class ApiError(HttpError):
    """
    An error that is safe to show to API clients.

    Carries a stable ErrorCode; the HTTP status is derived from it.
    """

    def __init__(self, code: ErrorCode, message: str, details: Any = None):
        super().__init__(HTTP_STATUS[code], message)
        self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            'code': self.code.value,
            'message': self.message,
            'details': self.details,
        }

    def __repr__(self):
        return f"ApiError({self.code.value!r}, {self.message!r})"


# =============================================================================
# Storage fault classification
# =============================================================================

class StorageFault(str, Enum):
    """What went wrong in the database, independent of the driver."""
    UNIQUE_VIOLATION = 'unique_violation'
    FOREIGN_KEY_VIOLATION = 'foreign_key_violation'
    VALUE_TOO_LONG = 'value_too_long'
    INVALID_DATA = 'invalid_data'
    NOT_FOUND = 'not_found'
    CONNECTION = 'connection'
    TIMEOUT = 'timeout'
    UNSUPPORTED = 'unsupported'
    SCHEMA = 'schema'
    UNKNOWN = 'unknown'


# PostgreSQL SQLSTATE codes
SQLSTATE_FAULTS = {
    '23505': StorageFault.UNIQUE_VIOLATION,
    '23503': StorageFault.FOREIGN_KEY_VIOLATION,
    '23502': StorageFault.INVALID_DATA,       # not_null_violation
    '23514': StorageFault.INVALID_DATA,       # check_violation
    '22001': StorageFault.VALUE_TOO_LONG,
    '22003': StorageFault.INVALID_DATA,       # numeric_value_out_of_range
    '22P02': StorageFault.INVALID_DATA,       # invalid_text_representation
    '42804': StorageFault.INVALID_DATA,       # datatype_mismatch
    '57014': StorageFault.TIMEOUT,            # query_canceled (statement_timeout)
    '55P03': StorageFault.TIMEOUT,            # lock_not_available
    '53300': StorageFault.CONNECTION,         # too_many_connections
    '57P01': StorageFault.CONNECTION,         # admin_shutdown
    '42P01': StorageFault.SCHEMA,             # undefined_table
    '42703': StorageFault.SCHEMA,             # undefined_column
    '0A000': StorageFault.UNSUPPORTED,        # feature_not_supported
}

FAULT_ERRORS = {
    StorageFault.UNIQUE_VIOLATION: (ErrorCode.ALREADY_EXISTS, "Resource already exists"),
    StorageFault.FOREIGN_KEY_VIOLATION: (ErrorCode.INVALID_ARGUMENT, "Invalid reference"),
    StorageFault.VALUE_TOO_LONG: (ErrorCode.INVALID_ARGUMENT, "Data too long for field"),
    StorageFault.INVALID_DATA: (ErrorCode.INVALID_ARGUMENT, "Invalid data provided"),
    StorageFault.NOT_FOUND: (ErrorCode.NOT_FOUND, "Resource not found"),
    StorageFault.CONNECTION: (ErrorCode.UNAVAILABLE, "Database temporarily unavailable"),
    StorageFault.TIMEOUT: (ErrorCode.DEADLINE_EXCEEDED, "Request timed out"),
    StorageFault.UNSUPPORTED: (ErrorCode.UNIMPLEMENTED, "Database feature not supported"),
    StorageFault.SCHEMA: (ErrorCode.INTERNAL, INTERNAL_MESSAGE),
    StorageFault.UNKNOWN: (ErrorCode.INTERNAL, INTERNAL_MESSAGE),
}

TIMEOUT_MARKERS = ('timeout', 'timed out', 'etimedout', 'econnreset', 'canceling statement')
UNAVAILABLE_MARKERS = ('econnrefused', 'enotfound', 'could not connect', 'connection refused',
                       'database is locked', 'server closed the connection')


def _sqlstate(exc: BaseException) -> Optional[str]:
    """SQLSTATE from the underlying driver error (psycopg2 pgcode / psycopg sqlstate)."""
    cause = exc.__cause__
    return getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)


def classify_storage_error(exc: BaseException) -> StorageFault:
    """
    Tag a database exception with the StorageFault it represents.
    """
    if isinstance(exc, ObjectDoesNotExist):
        return StorageFault.NOT_FOUND

    sqlstate = _sqlstate(exc)
    if sqlstate:
        if sqlstate in SQLSTATE_FAULTS:
            return SQLSTATE_FAULTS[sqlstate]
        if sqlstate.startswith('08'):
            return StorageFault.CONNECTION

    text = str(exc).lower()

    if isinstance(exc, IntegrityError):
        if 'unique' in text or 'duplicate' in text:
            return StorageFault.UNIQUE_VIOLATION
        if 'foreign key' in text:
            return StorageFault.FOREIGN_KEY_VIOLATION
        return StorageFault.INVALID_DATA

    if isinstance(exc, DataError):
        if 'too long' in text:
            return StorageFault.VALUE_TOO_LONG
        return StorageFault.INVALID_DATA

    if isinstance(exc, NotSupportedError):
        return StorageFault.UNSUPPORTED

    if isinstance(exc, (OperationalError, InterfaceError)):
        if any(marker in text for marker in TIMEOUT_MARKERS):
            return StorageFault.TIMEOUT
        if 'no such table' in text or 'no such column' in text:
            return StorageFault.SCHEMA
        return StorageFault.CONNECTION

    if isinstance(exc, ProgrammingError):
        return StorageFault.SCHEMA

    return StorageFault.UNKNOWN


# =============================================================================
# Normalization
# =============================================================================

def _code_for_status(status: int) -> ErrorCode:
    for code, code_status in HTTP_STATUS.items():
        if code_status == status:
            return code
    if 400 <= status < 500:
        return ErrorCode.INVALID_ARGUMENT
    return ErrorCode.INTERNAL


def _classify(exc: BaseException) -> Tuple[ErrorCode, str, Any]:
    if isinstance(exc, AuthenticationError):
        return ErrorCode.UNAUTHENTICATED, "no token provided", None

    if isinstance(exc, NinjaValidationError):
        return ErrorCode.INVALID_ARGUMENT, "Invalid input data", exc.errors

    if isinstance(exc, HttpError):
        return _code_for_status(exc.status_code), str(exc), None

    if isinstance(exc, Http404):
        return ErrorCode.NOT_FOUND, "Resource not found", None

    if isinstance(exc, DjangoValidationError):
        return ErrorCode.INVALID_ARGUMENT, "Invalid data provided", exc.messages

    if isinstance(exc, (DatabaseError, ObjectDoesNotExist)):
        code, message = FAULT_ERRORS[classify_storage_error(exc)]
        return code, message, None

    if isinstance(exc, (TimeoutError, ConnectionResetError)):
        return ErrorCode.DEADLINE_EXCEEDED, "Request timed out", None

    if isinstance(exc, ConnectionError):
        return ErrorCode.UNAVAILABLE, "Service temporarily unavailable", None

    text = str(exc).lower()
    if any(marker in text for marker in ('timeout', 'etimedout', 'econnreset')):
        return ErrorCode.DEADLINE_EXCEEDED, "Request timed out", None
    if any(marker in text for marker in UNAVAILABLE_MARKERS):
        return ErrorCode.UNAVAILABLE, "Service temporarily unavailable", None

    return ErrorCode.INTERNAL, INTERNAL_MESSAGE, None


def normalize_error(exc: BaseException) -> ApiError:
    """
    Convert any exception into an ApiError.

    An ApiError is returned as-is so it is never wrapped twice. For
    internal errors the client only sees a generic message; the full
    exception goes to the log.
    """
    if isinstance(exc, ApiError):
        return exc

    code, message, details = _classify(exc)

    if code == ErrorCode.INTERNAL:
        logger.error(f"Unhandled error: {exc!r}", exc_info=exc)
        message = INTERNAL_MESSAGE
        details = None

    return ApiError(code, message, details)


def register_exception_handlers(api) -> None:
    """
    Route every exception raised under `api` through normalize_error().
    """

    def handle(request, exc):
        error = normalize_error(exc)
        logger.warning(
            f"API error on {request.method} {request.path}: "
            f"{error.code.value} ({error.message})"
        )
        return api.create_response(request, error.to_dict(), status=error.status_code)

    for exc_class in (
        ApiError,
        AuthenticationError,
        NinjaValidationError,
        HttpError,
        Http404,
        Exception,
    ):
        api.add_exception_handler(exc_class, handle)

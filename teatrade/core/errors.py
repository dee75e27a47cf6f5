"""
Error taxonomy and the exception handlers that render it

- validation failure      -> 400 {"status": "fail", "message": ...}
- rate limit              -> 429 {"message": "Rate limit exceeded. Try again later."}
- domain rule violation   -> 400 (or the error's own status) {"status": "error", ...}
- uniqueness violation    -> 409
- retries exhausted       -> 503
- anything else           -> 500, logged with stack trace
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from teatrade.core.rate_limit import RATE_LIMIT_MESSAGE, RateLimitExceeded
from teatrade.core.responses import error_response
from teatrade.core.transactions import ErrorClass, TransactionRetryError, classify_error
from teatrade.core.validation import FAIL_STATUS, ValidationFailed, format_error

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """A business rule rejected the request (e.g. insufficient stock)"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int = None, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


async def validation_failed_handler(request: Request, exc: ValidationFailed) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = ", ".join(format_error(err) for err in exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"status": FAIL_STATUS, "message": message},
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # Return JSONResponse instead of raising HTTPException so the body keeps the fixed shape
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": RATE_LIMIT_MESSAGE},
        headers={
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "Retry-After": str(exc.retry_after),
        },
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message, details=exc.details))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    if classify_error(exc) is ErrorClass.CONFLICT:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_response("Duplicate record", details=str(exc.orig)),
        )
    logger.error(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response("Request violates a data constraint", details=str(exc.orig)),
    )


async def retry_exhausted_handler(request: Request, exc: TransactionRetryError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response(f"Transaction failed after {exc.attempts} attempts"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationFailed, validation_failed_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(TransactionRetryError, retry_exhausted_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

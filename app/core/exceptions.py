"""Typed billing errors and their HTTP translation."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Base class for errors raised by the billing services."""


class PlanNotFoundError(BillingError, LookupError):
    """A plan tier outside the catalog was requested."""

    def __init__(self, family: str, tier: object) -> None:
        self.family = family
        self.tier = tier
        super().__init__(f"No {family} plan for tier {tier!r}")


class StoreUnavailableError(BillingError):
    """The backing store failed in a way the caller must handle.

    Callers decide on degraded behaviour themselves. Usage must never be
    treated as unlimited because of this error.
    """

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store unavailable during {operation}")


class QuotaExceededError(BillingError):
    """A creation was refused because the plan limit is reached."""

    def __init__(self, limit_key: str, message: str, current: int, limit: int) -> None:
        self.limit_key = limit_key
        self.message = message
        self.current = current
        self.limit = limit
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": "limit_exceeded",
            "limit_key": self.limit_key,
            "message": self.message,
            "current": self.current,
            "limit": self.limit,
            "upgrade_required": True,
        }


async def quota_exceeded_handler(
    _request: Request, exc: QuotaExceededError,
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content=exc.to_dict(),
    )


async def store_unavailable_handler(
    _request: Request, exc: StoreUnavailableError,
) -> JSONResponse:
    logger.error("Store unavailable during %s: %s", exc.operation, exc.cause)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "store_unavailable",
            "operation": exc.operation,
            "message": "Billing data is temporarily unavailable. Please retry.",
        },
    )


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate connectivity failures from the store into StoreUnavailableError.

    Integrity and programming errors pass through untouched.
    """
    try:
        yield
    except (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError) as exc:
        raise StoreUnavailableError(operation, exc) from exc

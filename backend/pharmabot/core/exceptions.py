"""
Domain errors and their safe HTTP translation.

Business-rule errors carry a message that is fine to show to the user
verbatim (chat reply or API detail). StorageUnavailable never exposes the
underlying database error; it is logged internally and the user gets a
generic "try again".
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    """Base class for every expected outcome the services signal."""

    user_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidQuantity(PharmacyError):
    user_message = "Quantity must be a positive whole number"

    def __init__(self, quantity=None):
        self.quantity = quantity
        super().__init__()


class MedicineNotFound(PharmacyError):
    user_message = "Medicine not found"

    def __init__(self, medicine_id=None):
        self.medicine_id = medicine_id
        super().__init__()


class MedicineExpired(PharmacyError):
    def __init__(self, name: str, expiry_date):
        self.name = name
        self.expiry_date = expiry_date
        super().__init__(f"{name} expired on {expiry_date.isoformat()} and cannot be ordered")


class InsufficientStock(PharmacyError):
    user_message = "Insufficient stock"

    def __init__(self, medicine_id=None, requested: int | None = None, available: int | None = None):
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available
        if available is not None:
            super().__init__(f"Insufficient stock: {available} units available")
        else:
            super().__init__()


class OrderNotFound(PharmacyError):
    user_message = "Order not found"

    def __init__(self, order_id=None):
        self.order_id = order_id
        super().__init__()


class InvalidStatusTransition(PharmacyError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Order cannot move from {current} to {requested}")


class StorageUnavailable(PharmacyError):
    user_message = "Something went wrong on our side. Please try again in a moment."


class BusinessError:
    """Domain errors mapped to HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(detail: str = "Resource not found") -> HTTPException:
        logger.info(f"Not found: {detail}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business logic errors.

        OK to include specific details here since user caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """409 for stock and order-state conflicts."""
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def service_unavailable(original_error: Exception = None) -> HTTPException:
        """
        Generic 503 - logs actual error internally, hides from user.

        SECURITY: Never expose stack traces, SQL errors, or internal paths to users.
        """
        cause = original_error.__cause__ if original_error is not None else None
        logger.error(
            f"Storage unavailable: {type(cause or original_error).__name__}: {cause or original_error}"
        )
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StorageUnavailable.user_message,
        )

    @staticmethod
    def from_domain(error: PharmacyError) -> HTTPException:
        if isinstance(error, (MedicineNotFound, OrderNotFound)):
            return BusinessError.not_found(error.message)
        if isinstance(error, (InsufficientStock, InvalidStatusTransition)):
            return BusinessError.conflict(error.message)
        if isinstance(error, StorageUnavailable):
            return BusinessError.service_unavailable(error)
        return BusinessError.bad_request(error.message)

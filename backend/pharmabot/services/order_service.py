"""
Order placement and order lifecycle.

place_order is the one business rule of the system: the stock decrement and
the order row are written in a single transaction, so either both persist or
neither does. Status changes only move forward (see STATUS_TRANSITIONS).
"""
import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmabot.core.exceptions import (
    InvalidQuantity,
    InvalidStatusTransition,
    MedicineExpired,
    OrderNotFound,
    PharmacyError,
    StorageUnavailable,
)
from pharmabot.models.order import STATUS_TRANSITIONS, Order, OrderStatus
from pharmabot.services.inventory_service import decrement_stock, get_medicine, increment_stock

logger = logging.getLogger(__name__)


def _storage_error(db: Session, action: str, error: SQLAlchemyError) -> StorageUnavailable:
    db.rollback()
    logger.error(f"[OrderService] {action} failed: {type(error).__name__}: {error}", exc_info=True)
    return StorageUnavailable()


def place_order(
    db: Session,
    user_id,
    medicine_id: int,
    quantity: int,
    reject_expired: bool = False,
    today: date | None = None,
) -> Order:
    """
    Check and decrement stock, then record a PENDING order, atomically.

    Raises:
        InvalidQuantity: quantity is not a positive integer
        MedicineNotFound: no medicine with that id
        MedicineExpired: reject_expired is set and the medicine is past expiry
        InsufficientStock: not enough units; no order is created
        StorageUnavailable: the database failed; nothing is persisted
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)

    try:
        medicine = get_medicine(db, medicine_id)
        if reject_expired and medicine.is_expired(today):
            raise MedicineExpired(medicine.name, medicine.expiry_date)

        decrement_stock(db, medicine_id, quantity, commit=False)
        order = create_order(db, user_id, medicine_id, quantity, commit=False)
        db.commit()
        db.refresh(order)
    except PharmacyError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        raise _storage_error(db, f"Placing order for medicine {medicine_id}", e) from e

    logger.info(
        f"[OrderService] Order {order.id} placed: user={order.user_id}, "
        f"medicine={medicine_id}, qty={quantity}"
    )
    return order


def create_order(db: Session, user_id, medicine_id: int, quantity: int, commit: bool = True) -> Order:
    """Insert a PENDING order row without touching stock."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    try:
        get_medicine(db, medicine_id)
        order = Order(user_id=str(user_id), medicine_id=medicine_id, quantity=quantity, status=OrderStatus.PENDING)
        db.add(order)
        if commit:
            db.commit()
            db.refresh(order)
        else:
            db.flush()
    except PharmacyError:
        if commit:
            db.rollback()
        raise
    except SQLAlchemyError as e:
        raise _storage_error(db, "Creating order", e) from e
    return order


def get_order(db: Session, order_id: int) -> Order:
    try:
        order = db.query(Order).filter(Order.id == order_id).first()
    except SQLAlchemyError as e:
        raise _storage_error(db, f"Loading order {order_id}", e) from e
    if order is None:
        raise OrderNotFound(order_id)
    return order


def list_orders_for_user(db: Session, user_id, limit: int = 10) -> list[Order]:
    """Newest first."""
    try:
        return (
            db.query(Order)
            .filter(Order.user_id == str(user_id))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise _storage_error(db, f"Listing orders for user {user_id}", e) from e


def _transition(db: Session, order: Order, new_status: OrderStatus) -> None:
    """
    Move `order` to `new_status` with a compare-and-set on the current status.

    Leaves committing to the caller. A concurrent transition that got there
    first makes the UPDATE match no rows, which is reported as invalid.
    """
    current = OrderStatus(order.status)
    if new_status not in STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, new_status.value)

    updated = (
        db.query(Order)
        .filter(Order.id == order.id, Order.status == current)
        .update({Order.status: new_status}, synchronize_session=False)
    )
    if updated == 0:
        db.expire(order)
        raise InvalidStatusTransition(OrderStatus(order.status).value, new_status.value)


def update_status(db: Session, order_id: int, new_status) -> Order:
    """
    Forward-only status change: pending -> fulfilled | cancelled.

    Stock is not adjusted here; use cancel_order to return units.
    """
    try:
        new_status = OrderStatus(new_status)
    except ValueError:
        raise InvalidStatusTransition("unknown", str(new_status))

    try:
        order = get_order(db, order_id)
        _transition(db, order, new_status)
        db.commit()
        db.refresh(order)
    except PharmacyError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        raise _storage_error(db, f"Updating order {order_id}", e) from e

    logger.info(f"[OrderService] Order {order_id} -> {new_status.value}")
    return order


def fulfill_order(db: Session, order_id: int) -> Order:
    return update_status(db, order_id, OrderStatus.FULFILLED)


def cancel_order(db: Session, order_id: int, user_id=None) -> Order:
    """
    Cancel a pending order and put its quantity back in stock, atomically.

    When user_id is given, another user's order is reported as not found.
    """
    try:
        order = get_order(db, order_id)
        if user_id is not None and order.user_id != str(user_id):
            raise OrderNotFound(order_id)

        _transition(db, order, OrderStatus.CANCELLED)
        increment_stock(db, order.medicine_id, order.quantity, commit=False)
        db.commit()
        db.refresh(order)
    except PharmacyError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        raise _storage_error(db, f"Cancelling order {order_id}", e) from e

    logger.info(f"[OrderService] Order {order_id} cancelled, {order.quantity} units returned")
    return order

"""Orders: placement and forward-only status changes."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharmabot.api.deps import get_db
from pharmabot.core.config import settings
from pharmabot.core.exceptions import BusinessError, PharmacyError
from pharmabot.models.order import OrderStatus
from pharmabot.schemas.order import OrderCreate, OrderRecord, OrderStatusUpdate
from pharmabot.services import order_service

router = APIRouter()


@router.post("", response_model=OrderRecord, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    try:
        return order_service.place_order(
            db,
            payload.user_id,
            payload.medicine_id,
            payload.quantity,
            reject_expired=settings.REJECT_EXPIRED_ORDERS,
        )
    except PharmacyError as e:
        raise BusinessError.from_domain(e)


@router.get("", response_model=list[OrderRecord])
def list_orders(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        return order_service.list_orders_for_user(db, user_id, limit=limit)
    except PharmacyError as e:
        raise BusinessError.from_domain(e)


@router.get("/{order_id}", response_model=OrderRecord)
def read_order(order_id: int, db: Session = Depends(get_db)):
    try:
        return order_service.get_order(db, order_id)
    except PharmacyError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{order_id}/status", response_model=OrderRecord)
def change_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    """Forward-only: pending -> fulfilled | cancelled. Cancelling returns stock."""
    try:
        if payload.status == OrderStatus.CANCELLED:
            return order_service.cancel_order(db, order_id)
        return order_service.update_status(db, order_id, payload.status)
    except PharmacyError as e:
        raise BusinessError.from_domain(e)

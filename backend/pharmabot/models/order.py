"""
Order: a user's request to withdraw units of a medicine.
Status flow: PENDING -> FULFILLED | CANCELLED. Both targets are terminal.
"""
import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pharmabot.db.base import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


# Allowed forward moves; anything missing here is rejected
STATUS_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.FULFILLED, OrderStatus.CANCELLED}),
    OrderStatus.FULFILLED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)  # Telegram user id, opaque
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(
        Enum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    medicine = relationship("Medicine", backref="orders")

    def __repr__(self):
        return f"<Order id={self.id} medicine_id={self.medicine_id} qty={self.quantity} status={self.status}>"

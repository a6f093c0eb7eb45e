from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from pharmabot.models.order import OrderStatus


class OrderCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    medicine_id: int
    # Validated by the order service so the error matches the chat reply
    quantity: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderRecord(BaseModel):
    id: int
    user_id: str
    medicine_id: int
    quantity: int
    status: OrderStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

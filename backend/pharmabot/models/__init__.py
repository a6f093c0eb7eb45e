from pharmabot.models.medicine import Medicine
from pharmabot.models.order import Order, OrderStatus
from pharmabot.models.conversation_state import ConversationState

__all__ = ["Medicine", "Order", "OrderStatus", "ConversationState"]

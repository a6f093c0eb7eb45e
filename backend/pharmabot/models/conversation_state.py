"""
Conversation State Model: persistent per-chat flow storage.

Holds the step of the order flow (or the pending anonymous-message target)
so a chat can resume after a restart.
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmabot.db.base import Base


class ConversationState(Base):
    """
    Schema:
        chat_id: Telegram chat identifier (unique)
        state: Current step (e.g., "await_medicine", "await_quantity")
        payload: JSON blob with collected data (medicine_id, quantity, ...)
        updated_at: Last activity timestamp
    """
    __tablename__ = "conversation_states"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String(64), unique=True, nullable=False, index=True)
    state = Column(String(64), nullable=False, default="idle")
    payload = Column(JSON, nullable=True, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ConversationState chat_id={self.chat_id} state={self.state}>"

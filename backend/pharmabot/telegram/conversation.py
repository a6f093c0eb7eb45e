"""
Database-persisted conversation state per Telegram chat.

Every state change is committed immediately so a multi-step order flow
survives a bot restart.
"""
import logging

from sqlalchemy.orm import Session

from pharmabot.models.conversation_state import ConversationState

logger = logging.getLogger(__name__)


class FlowStep:
    IDLE = "idle"
    AWAIT_MEDICINE = "await_medicine"
    AWAIT_QUANTITY = "await_quantity"
    AWAIT_CONFIRMATION = "await_confirmation"
    WRITE_TO_PHARMACIST = "write_to_pharmacist"


def _empty_state() -> dict:
    return {"step": FlowStep.IDLE, "data": {}}


def get_state(db: Session, chat_id: int) -> dict:
    record = db.query(ConversationState).filter(
        ConversationState.chat_id == str(chat_id)
    ).first()

    if not record:
        return _empty_state()

    payload = record.payload if isinstance(record.payload, dict) else {}
    return {"step": record.state or FlowStep.IDLE, "data": payload.get("data", {})}


def save_state(db: Session, chat_id: int, step: str, data: dict | None = None) -> dict:
    record = db.query(ConversationState).filter(
        ConversationState.chat_id == str(chat_id)
    ).first()

    payload = {"data": data or {}}
    if record:
        record.state = step
        record.payload = payload
    else:
        record = ConversationState(chat_id=str(chat_id), state=step, payload=payload)
        db.add(record)

    db.commit()
    logger.debug(f"[FSM] Saved state for chat_id={chat_id}: {step}")
    return {"step": step, "data": payload["data"]}


def next_order_step(data: dict) -> str:
    """First missing piece of the order, or confirmation when complete."""
    if not data.get("medicine_id"):
        return FlowStep.AWAIT_MEDICINE
    if not data.get("quantity"):
        return FlowStep.AWAIT_QUANTITY
    return FlowStep.AWAIT_CONFIRMATION


def reset_state(db: Session, chat_id: int) -> None:
    """Back to IDLE. Called on flow completion or cancellation."""
    record = db.query(ConversationState).filter(
        ConversationState.chat_id == str(chat_id)
    ).first()

    if record:
        record.state = FlowStep.IDLE
        record.payload = {"data": {}}
        db.commit()

    logger.info(f"[FSM] Reset state for chat_id={chat_id}")

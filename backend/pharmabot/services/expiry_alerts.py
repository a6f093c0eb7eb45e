"""
Expiry Alerts: background scanner for medicines close to their expiry date.

Runs periodically alongside the API, queries medicines whose expiry date is
within EXPIRY_WARNING_DAYS and posts one alert per medicine to the pharmacy
group chat. A failed send is logged and the rest of the batch still goes out.
"""
import asyncio
import logging
from datetime import date, timedelta

from sqlalchemy.orm import Session
from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from pharmabot.core.config import settings
from pharmabot.db.session import SessionLocal
from pharmabot.models.medicine import Medicine
from pharmabot.telegram.formatting import format_date

logger = logging.getLogger(__name__)


def fetch_expiring_medicines(db: Session, within_days: int, today: date | None = None) -> list[Medicine]:
    """Medicines expiring on or before today + within_days, soonest first."""
    cutoff = (today or date.today()) + timedelta(days=within_days)
    return (
        db.query(Medicine)
        .filter(Medicine.expiry_date <= cutoff)
        .order_by(Medicine.expiry_date, Medicine.name)
        .all()
    )


def format_expiry_alert(medicine: Medicine, today: date | None = None) -> str:
    """MarkdownV2 alert text. Negative days mean the medicine already expired."""
    days_until_expiry = (medicine.expiry_date - (today or date.today())).days
    return (
        "⚠️ *Medicine Expiry Alert*\n\n"
        f"*Name:* `{escape_markdown(medicine.name, version=2, entity_type='code')}`\n"
        f"*Expiry Date:* `{format_date(medicine.expiry_date)}`\n"
        f"*Days until expiry:* `{days_until_expiry}`\n"
        f"*Quantity:* `{medicine.stock}`\n"
        "Please check and take appropriate action\\."
    )


async def check_and_notify_expiring_medicines(
    bot,
    chat_id: int,
    within_days: int | None = None,
    today: date | None = None,
) -> int:
    """
    Send one alert per expiring medicine to chat_id.

    Returns the number of alerts delivered.
    """
    within_days = settings.EXPIRY_WARNING_DAYS if within_days is None else within_days

    db = SessionLocal()
    try:
        medicines = fetch_expiring_medicines(db, within_days, today)
        messages = [format_expiry_alert(m, today) for m in medicines]
        names = [m.name for m in medicines]
    finally:
        db.close()

    results = await asyncio.gather(
        *(bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.MARKDOWN_V2) for text in messages),
        return_exceptions=True,
    )

    sent = 0
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.error(f"[ExpiryAlerts] Failed to send alert for {name}: {result}")
        else:
            sent += 1

    logger.info(f"[ExpiryAlerts] Sent {sent}/{len(messages)} expiry alerts to chat {chat_id}")
    return sent


# ============================================================================
# BACKGROUND TASK: runs in asyncio loop alongside FastAPI
# ============================================================================

_scheduler_task: asyncio.Task | None = None


async def _expiry_scheduler_loop(bot, chat_id: int):
    logger.info(
        f"[ExpiryAlerts] Scheduler started. Interval: {settings.EXPIRY_SCAN_INTERVAL_SECONDS}s, "
        f"window: {settings.EXPIRY_WARNING_DAYS} days"
    )

    while True:
        try:
            await check_and_notify_expiring_medicines(bot, chat_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[ExpiryAlerts] Expiry check failed: {e}", exc_info=True)

        await asyncio.sleep(settings.EXPIRY_SCAN_INTERVAL_SECONDS)


def start_expiry_scheduler(bot) -> bool:
    """Start the background scanner. Called from the FastAPI lifespan."""
    global _scheduler_task
    if settings.PHARMACY_GROUP_CHAT_ID is None:
        logger.info("[ExpiryAlerts] PHARMACY_GROUP_CHAT_ID not set, expiry alerts disabled")
        return False
    if _scheduler_task is not None and not _scheduler_task.done():
        return True

    _scheduler_task = asyncio.create_task(_expiry_scheduler_loop(bot, settings.PHARMACY_GROUP_CHAT_ID))
    return True


def stop_expiry_scheduler() -> None:
    """Stop the scheduler gracefully. Called from FastAPI shutdown."""
    global _scheduler_task
    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
        logger.info("[ExpiryAlerts] Scheduler stopped")

"""
Telegram command router.

Commands map onto the services: /inventory reads the Inventory Store,
/order walks the user through a persisted flow (medicine -> quantity ->
confirmation) and /confirm calls place_order. Business-rule errors are
replied verbatim; storage failures get a generic "try again".
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from telegram import ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from pharmabot.core.config import settings
from pharmabot.core.exceptions import PharmacyError, StorageUnavailable
from pharmabot.db.session import SessionLocal
from pharmabot.models.medicine import Medicine
from pharmabot.services.inventory_service import find_medicine, list_medicines
from pharmabot.services.order_service import cancel_order, list_orders_for_user, place_order
from pharmabot.telegram.conversation import FlowStep, get_state, next_order_step, reset_state, save_state
from pharmabot.telegram.formatting import format_inventory, format_orders, help_text
from pharmabot.telegram.messages import resolve_language, t

logger = logging.getLogger(__name__)

ORDER_STEPS = (FlowStep.AWAIT_MEDICINE, FlowStep.AWAIT_QUANTITY, FlowStep.AWAIT_CONFIRMATION)
YES_WORDS = {"yes", "y", "si", "sí", "confirm"}
NO_WORDS = {"no", "n", "cancel"}
STORAGE_ERRORS = (SQLAlchemyError, StorageUnavailable)


def _lang(update: Update) -> str:
    user = update.effective_user
    return resolve_language(user.language_code if user else None)


def _parse_quantity(text: str | None) -> int | None:
    text = (text or "").strip()
    if not text.isdecimal():
        return None
    value = int(text)
    return value if value > 0 else None


def _split_order_args(args: list[str]) -> tuple[str, int | None]:
    """'/order Ibuprofen 200mg 2' -> ('Ibuprofen 200mg', 2)."""
    if len(args) > 1:
        quantity = _parse_quantity(args[-1])
        if quantity is not None:
            return " ".join(args[:-1]), quantity
    return " ".join(args), None


def _confirm_keyboard(lang: str) -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[t(lang, "button_confirm"), t(lang, "button_cancel")]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


async def _reply_storage_error(update: Update, lang: str, error: Exception) -> None:
    logger.error(f"[TELEGRAM] Storage error for chat_id={update.effective_chat.id}: {error}")
    await update.message.reply_text(t(lang, "try_again"))


async def _prompt_for_step(update: Update, lang: str, step: str, data: dict) -> None:
    if step == FlowStep.AWAIT_MEDICINE:
        await update.message.reply_text(t(lang, "ask_medicine"))
    elif step == FlowStep.AWAIT_QUANTITY:
        await update.message.reply_text(t(lang, "ask_quantity", name=data["medicine_name"]))
    else:
        await update.message.reply_text(
            t(lang, "confirm_prompt", quantity=data["quantity"], name=data["medicine_name"]),
            reply_markup=_confirm_keyboard(lang),
        )


# ==============================================================================
# COMMAND HANDLERS
# ==============================================================================

async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/start, optionally with a pharmacist chat id from a deep link."""
    lang = _lang(update)
    args = context.args or []

    if not args:
        logger.info("[TELEGRAM] Received start command without parameter")
        await update.message.reply_text(t(lang, "welcome"))
        return

    payload = args[0]
    try:
        pharmacist_chat_id = int(payload)
    except ValueError:
        logger.warning(f"[TELEGRAM] Received start command with invalid parameter: {payload}")
        await update.message.reply_text(t(lang, "invalid_link"))
        return

    logger.info(f"[TELEGRAM] Received start command with pharmacist chat id: {payload}")
    db = SessionLocal()
    try:
        save_state(
            db,
            update.effective_chat.id,
            FlowStep.WRITE_TO_PHARMACIST,
            {"pharmacist_chat_id": pharmacist_chat_id},
        )
    except STORAGE_ERRORS as e:
        db.rollback()
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await update.message.reply_text(t(lang, "write_to_pharmacist"))


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.info("[TELEGRAM] Received help command")
    await update.message.reply_text(help_text(), parse_mode=ParseMode.MARKDOWN_V2)


async def handle_menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Custom keyboard with the three main actions; disappears after one use."""
    lang = _lang(update)
    keyboard = ReplyKeyboardMarkup(
        [
            [t(lang, "button_inventory")],
            [t(lang, "button_order")],
            [t(lang, "button_help")],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
    await update.message.reply_text(t(lang, "menu"), reply_markup=keyboard)


async def handle_inventory(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List fulfillable (non-expired) medicines by name."""
    lang = _lang(update)
    logger.info(f"[TELEGRAM] Listing inventory for chat_id={update.effective_chat.id}")

    db = SessionLocal()
    try:
        medicines = list_medicines(db, include_expired=False)
        text = format_inventory(medicines, lang)
    except STORAGE_ERRORS as e:
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await update.message.reply_text(text)


async def handle_order(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Start the order flow, skipping the steps the arguments already answer."""
    lang = _lang(update)
    chat_id = update.effective_chat.id
    query, quantity = _split_order_args(context.args or [])

    db = SessionLocal()
    try:
        data = {"quantity": quantity}
        if query:
            medicine = find_medicine(db, query)
            if medicine is None:
                save_state(db, chat_id, FlowStep.AWAIT_MEDICINE, data)
                await update.message.reply_text(t(lang, "unknown_medicine", query=query))
                return
            data.update(medicine_id=medicine.id, medicine_name=medicine.name)

        step = next_order_step(data)
        save_state(db, chat_id, step, data)
    except STORAGE_ERRORS as e:
        db.rollback()
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    logger.info(f"[TELEGRAM] Order flow started for chat_id={chat_id}, step={step}")
    await _prompt_for_step(update, lang, step, data)


async def handle_confirm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Place the order collected by the flow."""
    lang = _lang(update)
    chat_id = update.effective_chat.id
    user_id = update.effective_user.id

    db = SessionLocal()
    try:
        state = get_state(db, chat_id)
        if state["step"] != FlowStep.AWAIT_CONFIRMATION:
            await update.message.reply_text(t(lang, "nothing_to_confirm"))
            return

        data = state["data"]
        try:
            order = place_order(
                db,
                user_id,
                data["medicine_id"],
                data["quantity"],
                reject_expired=settings.REJECT_EXPIRED_ORDERS,
            )
        except StorageUnavailable as e:
            # Flow is kept so the user can simply /confirm again
            await _reply_storage_error(update, lang, e)
            return
        except PharmacyError as e:
            logger.info(f"[TELEGRAM] Order rejected for chat_id={chat_id}: {e.message}")
            reset_state(db, chat_id)
            await update.message.reply_text(e.message, reply_markup=ReplyKeyboardRemove())
            return

        reset_state(db, chat_id)
        reply = t(lang, "order_placed", name=data["medicine_name"], quantity=order.quantity, order_id=order.id)
    except STORAGE_ERRORS as e:
        db.rollback()
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await update.message.reply_text(reply, reply_markup=ReplyKeyboardRemove())


async def handle_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/cancel stops the active flow; /cancel <order id> cancels a pending order."""
    lang = _lang(update)
    chat_id = update.effective_chat.id
    args = context.args or []

    db = SessionLocal()
    try:
        if args:
            order_id = _parse_quantity(args[0])
            if order_id is None:
                await update.message.reply_text(t(lang, "nothing_to_cancel"))
                return
            try:
                cancel_order(db, order_id, user_id=update.effective_user.id)
            except StorageUnavailable as e:
                await _reply_storage_error(update, lang, e)
                return
            except PharmacyError as e:
                await update.message.reply_text(e.message)
                return
            reply = t(lang, "order_cancelled", order_id=order_id)
        else:
            state = get_state(db, chat_id)
            if state["step"] in ORDER_STEPS:
                reset_state(db, chat_id)
                reply = t(lang, "flow_cancelled")
            elif state["step"] == FlowStep.WRITE_TO_PHARMACIST:
                reset_state(db, chat_id)
                reply = t(lang, "message_cancelled")
            else:
                reply = t(lang, "nothing_to_cancel")
    except STORAGE_ERRORS as e:
        db.rollback()
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await update.message.reply_text(reply, reply_markup=ReplyKeyboardRemove())


async def handle_orders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    lang = _lang(update)

    db = SessionLocal()
    try:
        orders = list_orders_for_user(db, update.effective_user.id)
        ids = {o.medicine_id for o in orders}
        names = dict(db.query(Medicine.id, Medicine.name).filter(Medicine.id.in_(ids)).all()) if ids else {}
        text = format_orders(orders, names, lang)
    except STORAGE_ERRORS as e:
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await update.message.reply_text(text)


async def handle_message_link(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/message: deep link that lets others write to this chat anonymously."""
    lang = _lang(update)
    link = f"{context.bot.link}?start={update.effective_chat.id}"
    await update.message.reply_text(t(lang, "share_link", link=link))


# ==============================================================================
# FREE-TEXT MESSAGES
# ==============================================================================

async def _relay_to_pharmacist(update: Update, context: ContextTypes.DEFAULT_TYPE, lang: str, state: dict) -> None:
    chat_id = update.effective_chat.id
    text = update.message.text
    if not text:
        await update.message.reply_text(t(lang, "text_only"))
        return

    target = state["data"].get("pharmacist_chat_id")
    try:
        await context.bot.send_message(chat_id=target, text=t(lang, "anonymous_message", text=text))
        reply = t(lang, "message_sent")
    except TelegramError as e:
        logger.warning(f"[TELEGRAM] Anonymous message to {target} failed: {e}")
        reply = t(lang, "message_failed")

    db = SessionLocal()
    try:
        reset_state(db, chat_id)
    finally:
        db.close()

    await update.message.reply_text(reply)


async def _continue_order_flow(update: Update, lang: str, state: dict) -> None:
    chat_id = update.effective_chat.id
    text = update.message.text.strip()
    step = state["step"]
    data = dict(state["data"])

    db = SessionLocal()
    try:
        if step == FlowStep.AWAIT_MEDICINE:
            medicine = find_medicine(db, text)
            if medicine is None:
                await update.message.reply_text(t(lang, "unknown_medicine", query=text))
                return
            data.update(medicine_id=medicine.id, medicine_name=medicine.name)
        elif step == FlowStep.AWAIT_QUANTITY:
            quantity = _parse_quantity(text)
            if quantity is None:
                await update.message.reply_text(t(lang, "bad_quantity"))
                return
            data["quantity"] = quantity

        step = next_order_step(data)
        save_state(db, chat_id, step, data)
    except STORAGE_ERRORS as e:
        db.rollback()
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    await _prompt_for_step(update, lang, step, data)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Menu buttons, order-flow answers and anonymous-message relay."""
    lang = _lang(update)
    text = (update.message.text or "").strip()

    db = SessionLocal()
    try:
        state = get_state(db, update.effective_chat.id)
    except STORAGE_ERRORS as e:
        await _reply_storage_error(update, lang, e)
        return
    finally:
        db.close()

    if state["step"] == FlowStep.WRITE_TO_PHARMACIST:
        await _relay_to_pharmacist(update, context, lang, state)
        return
    if not text:
        return

    buttons = {
        t(lang, "button_inventory"): handle_inventory,
        t(lang, "button_order"): handle_order,
        t(lang, "button_help"): handle_help,
        t(lang, "button_confirm"): handle_confirm,
        t(lang, "button_cancel"): handle_cancel,
    }
    if text in buttons:
        await buttons[text](update, context)
        return

    if state["step"] == FlowStep.AWAIT_CONFIRMATION:
        if text.lower() in YES_WORDS:
            await handle_confirm(update, context)
        elif text.lower() in NO_WORDS:
            await handle_cancel(update, context)
        else:
            await _prompt_for_step(update, lang, state["step"], state["data"])
        return

    if state["step"] in ORDER_STEPS:
        await _continue_order_flow(update, lang, state)
        return

    await update.message.reply_text(t(lang, "unknown_command"))


async def handle_unknown_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.info(f"[TELEGRAM] Unknown command: {update.message.text}")
    await update.message.reply_text(t(_lang(update), "unknown_command"))

"""
Telegram bot wiring.

The bot runs either in a background thread next to the FastAPI app
(start_bot_background / stop_bot_background) or standalone via
`pharmabot-bot` (run_polling). The expiry alert loop always runs on the
bot's own event loop, since the Bot's HTTP client is bound to that loop.
"""
import asyncio
import logging
import threading
from typing import Optional

from telegram import BotCommand, error
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from pharmabot.core.config import settings
from pharmabot.services.expiry_alerts import start_expiry_scheduler, stop_expiry_scheduler
from pharmabot.telegram.formatting import HELP_COMMANDS
from pharmabot.telegram.handlers import (
    handle_cancel,
    handle_confirm,
    handle_help,
    handle_inventory,
    handle_menu,
    handle_message_link,
    handle_order,
    handle_orders,
    handle_start,
    handle_text,
    handle_unknown_command,
)

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None
_bot_loop: Optional[asyncio.AbstractEventLoop] = None
_bot_thread: Optional[threading.Thread] = None


def register_handlers(app: Application) -> Application:
    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("help", handle_help))
    app.add_handler(CommandHandler("menu", handle_menu))
    app.add_handler(CommandHandler("inventory", handle_inventory))
    app.add_handler(CommandHandler("order", handle_order))
    app.add_handler(CommandHandler("confirm", handle_confirm))
    app.add_handler(CommandHandler("cancel", handle_cancel))
    app.add_handler(CommandHandler("orders", handle_orders))
    app.add_handler(CommandHandler("message", handle_message_link))
    app.add_handler(MessageHandler(~filters.COMMAND, handle_text))
    app.add_handler(MessageHandler(filters.COMMAND, handle_unknown_command))
    return app


async def _post_init(app: Application) -> None:
    await app.bot.set_my_commands([BotCommand(name, description) for name, description in HELP_COMMANDS])
    start_expiry_scheduler(app.bot)


async def _post_shutdown(app: Application) -> None:
    stop_expiry_scheduler()


def build_application(token: str | None = None) -> Application:
    app = (
        Application.builder()
        .token(token or settings.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    return register_handlers(app)


async def _start_polling_with_retry(app, max_retries=3, initial_backoff=2):
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] Polling started successfully")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] Conflict detected: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] Failed after {max_retries} retries. Bot disabled. Error: {e}")
                return False
    return False


async def _shutdown(app: Application) -> None:
    if app.updater and app.updater.running:
        await app.updater.stop()
    if app.running:
        await app.stop()
    await app.shutdown()


def _run_bot():
    global _bot_app, _bot_loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _bot_loop = loop

    try:
        _bot_app = build_application()
        # initialize() does not fire post_init outside run_polling
        loop.run_until_complete(_bot_app.initialize())
        loop.run_until_complete(_post_init(_bot_app))
        loop.run_until_complete(_bot_app.start())

        if loop.run_until_complete(_start_polling_with_retry(_bot_app)):
            loop.run_forever()
    except Exception as e:
        logger.error(f"[Telegram] Bot error: {e}", exc_info=True)
    finally:
        try:
            if _bot_app:
                stop_expiry_scheduler()
                loop.run_until_complete(_shutdown(_bot_app))
        except Exception as e:
            logger.error(f"[Telegram] Shutdown error: {e}")
        loop.close()
        _bot_loop = None


def start_bot_background() -> bool:
    global _bot_thread
    if not settings.TELEGRAM_BOT_TOKEN:
        return False
    _bot_thread = threading.Thread(target=_run_bot, name="telegram-bot", daemon=True)
    _bot_thread.start()
    return True


def stop_bot_background(timeout: float = 10.0) -> None:
    """Stop polling and wait for the bot thread. Called on FastAPI shutdown."""
    global _bot_thread
    if _bot_loop is not None:
        _bot_loop.call_soon_threadsafe(_bot_loop.stop)
    if _bot_thread is not None:
        _bot_thread.join(timeout=timeout)
        _bot_thread = None


def run_polling() -> None:
    """Entry point for running the bot on its own, without the HTTP API."""
    from pharmabot.core.logging import setup_logging
    from pharmabot.db.init_db import init_db

    setup_logging()
    if not settings.TELEGRAM_BOT_TOKEN:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")

    init_db()
    logger.info("Starting the pharmacy bot...")
    build_application().run_polling(drop_pending_updates=True)
    logger.info("Shutting down gracefully")


if __name__ == "__main__":
    run_polling()

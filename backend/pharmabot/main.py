"""
Pharmacy Bot Backend.

ARCHITECTURE:
- Telegram Bot: customers check inventory and place medicine orders
- FastAPI Backend: inventory and order endpoints for the pharmacy staff
- SQL database: source of truth for stock and orders

Every stock change goes through the order service, which writes the stock
decrement and the order row in one transaction.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pharmabot.api.routes import inventory, orders
from pharmabot.core.config import settings
from pharmabot.core.logging import setup_logging
from pharmabot.db.init_db import init_db
from pharmabot.db.session import dispose_engine
from pharmabot.telegram.bot import start_bot_background, stop_bot_background

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Initialize database tables and seed the catalog
    2. Start Telegram bot polling and expiry alerts (if token provided)

    Shutdown:
    1. Stop Telegram bot gracefully
    2. Dispose the database engine
    """
    setup_logging()
    logger.info("[*] Initializing database...")
    init_db()
    logger.info("[OK] Database initialized")

    if start_bot_background():
        logger.info("[OK] Telegram bot started")
    else:
        logger.warning("[WARN] Telegram bot disabled (no token)")

    yield

    try:
        stop_bot_background()
    finally:
        dispose_engine()


app = FastAPI(
    title="Pharmacy Bot API",
    description="Inventory and orders behind the pharmacy Telegram bot.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
    max_age=600,
)

app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])


@app.get("/health")
def health():
    return {"status": "ok", "telegram_bot": "enabled" if settings.TELEGRAM_BOT_TOKEN else "disabled"}

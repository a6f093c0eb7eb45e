"""Plain-text and MarkdownV2 rendering of chat replies."""
from datetime import date

from telegram.helpers import escape_markdown

from pharmabot.models.medicine import Medicine
from pharmabot.models.order import Order
from pharmabot.telegram.messages import t

HELP_COMMANDS = [
    ("start", "Start interacting with the pharmacy bot"),
    ("inventory", "Check the pharmacy inventory"),
    ("order", "Place a medicine order, e.g. /order Ibuprofen 2"),
    ("confirm", "Confirm the order you are placing"),
    ("cancel", "Stop the current order or message, or /cancel <order id> to cancel a pending order"),
    ("orders", "Show your recent orders"),
    ("menu", "Display the main menu"),
    ("message", "Get a link for anonymous messages to a pharmacist"),
    ("help", "Display this help information"),
]


def format_date(value: date) -> str:
    """dd-mm-yyyy, used in expiry alerts."""
    return value.strftime("%d-%m-%Y")


def format_display_date(value: date) -> str:
    """e.g. 31 Dec 2025, used in inventory listings."""
    return value.strftime("%d %b %Y")


def format_inventory(medicines: list[Medicine], lang: str = "en") -> str:
    if not medicines:
        return t(lang, "no_medicines")

    lines = [
        f"🏥 {m.name}\n   Stock: {m.stock} units\n   Expires: {format_display_date(m.expiry_date)}"
        for m in medicines
    ]
    return f"{t(lang, 'inventory')}:\n\n" + "\n\n".join(lines)


def format_orders(orders: list[Order], medicine_names: dict[int, str], lang: str = "en") -> str:
    if not orders:
        return t(lang, "no_orders")

    lines = []
    for order in orders:
        status = order.status.value if hasattr(order.status, "value") else order.status
        name = medicine_names.get(order.medicine_id, f"#{order.medicine_id}")
        lines.append(f"#{order.id} • {name} x{order.quantity} • {status}")
    return f"{t(lang, 'your_orders')}:\n\n" + "\n".join(lines)


def help_text() -> str:
    """MarkdownV2 help listing every command."""
    lines = ["*Pharmacy Bot Help*", "", "Here are the available commands:", ""]
    lines += [f"/{name} \\- {escape_markdown(description, version=2)}" for name, description in HELP_COMMANDS]
    lines += ["", "To use a command, simply type it or tap on it\\."]
    return "\n".join(lines)

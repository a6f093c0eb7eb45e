"""User-facing chat strings per language."""
from pharmabot.core.config import settings

TRANSLATIONS = {
    "en": {
        "welcome": "Welcome to the pharmacy bot!",
        "inventory": "Available medicines",
        "no_medicines": "No medicines found in the inventory",
        "menu": "Welcome to the Pharmacy Bot! Please choose an option:",
        "ask_medicine": "Which medicine would you like to order? Send its name or ID.",
        "ask_quantity": "How many units of {name} do you need?",
        "bad_quantity": "Please send a positive whole number.",
        "unknown_medicine": "I couldn't find a medicine matching '{query}'. Try /inventory to see the list.",
        "confirm_prompt": "Order {quantity} x {name}?\nSend /confirm to place the order or /cancel to stop.",
        "order_placed": "Your order for {name} (x{quantity}) has been placed. Order ID: {order_id}",
        "nothing_to_confirm": "There is no order to confirm. Start one with /order.",
        "flow_cancelled": "Order cancelled. Nothing was placed.",
        "nothing_to_cancel": "There is nothing to cancel.",
        "order_cancelled": "Order {order_id} has been cancelled.",
        "no_orders": "You have no orders yet.",
        "your_orders": "Your recent orders",
        "try_again": "Something went wrong on our side. Please try again in a moment.",
        "unknown_command": "I don't understand that command. Please use the menu or type /help for available commands.",
        "invalid_link": "Invalid link!",
        "write_to_pharmacist": "Send your message to the pharmacist:",
        "message_sent": "Message sent to the pharmacist!",
        "message_failed": "Error sending message. The pharmacist may have blocked the bot.",
        "message_cancelled": "Message cancelled. Nothing was sent to the pharmacist.",
        "text_only": "Please send a text message.",
        "share_link": "Share this link to receive anonymous messages: {link}",
        "anonymous_message": "You have a new anonymous message:\n\n{text}",
        "button_inventory": "📋 Check Inventory",
        "button_order": "🛒 Place Order",
        "button_help": "❓ Help",
        "button_confirm": "✅ Confirm",
        "button_cancel": "❌ Cancel",
    },
    "es": {
        "welcome": "¡Bienvenido al bot de farmacia!",
        "inventory": "Medicamentos disponibles",
        "no_medicines": "No se encontraron medicamentos en el inventario",
        "menu": "¡Bienvenido al bot de farmacia! Elige una opción:",
        "ask_medicine": "¿Qué medicamento quieres pedir? Envía su nombre o ID.",
        "ask_quantity": "¿Cuántas unidades de {name} necesitas?",
        "bad_quantity": "Envía un número entero positivo.",
        "unknown_medicine": "No encontré ningún medicamento para '{query}'. Usa /inventory para ver la lista.",
        "confirm_prompt": "¿Pedir {quantity} x {name}?\nEnvía /confirm para hacer el pedido o /cancel para detenerlo.",
        "order_placed": "Tu pedido de {name} (x{quantity}) ha sido realizado. ID del pedido: {order_id}",
        "nothing_to_confirm": "No hay ningún pedido para confirmar. Empieza uno con /order.",
        "flow_cancelled": "Pedido cancelado. No se realizó nada.",
        "nothing_to_cancel": "No hay nada que cancelar.",
        "order_cancelled": "El pedido {order_id} ha sido cancelado.",
        "no_orders": "Todavía no tienes pedidos.",
        "your_orders": "Tus pedidos recientes",
        "try_again": "Algo salió mal. Inténtalo de nuevo en un momento.",
        "unknown_command": "No entiendo ese comando. Usa el menú o escribe /help para ver los comandos.",
        "invalid_link": "¡Enlace no válido!",
        "write_to_pharmacist": "Envía tu mensaje al farmacéutico:",
        "message_sent": "¡Mensaje enviado al farmacéutico!",
        "message_failed": "Error al enviar el mensaje. Puede que el farmacéutico haya bloqueado el bot.",
        "message_cancelled": "Mensaje cancelado. No se envió nada al farmacéutico.",
        "text_only": "Envía un mensaje de texto.",
        "share_link": "Comparte este enlace para recibir mensajes anónimos: {link}",
        "anonymous_message": "Tienes un nuevo mensaje anónimo:\n\n{text}",
    },
}


def resolve_language(language_code: str | None) -> str:
    """Map a Telegram language_code like 'es-MX' to a supported language."""
    if language_code:
        base = language_code.split("-")[0].lower()
        if base in TRANSLATIONS:
            return base
    return settings.DEFAULT_LANGUAGE if settings.DEFAULT_LANGUAGE in TRANSLATIONS else "en"


def t(lang: str, key: str, **kwargs) -> str:
    """Translated text; falls back to English, then to a visible marker."""
    text = TRANSLATIONS.get(lang, {}).get(key) or TRANSLATIONS["en"].get(key)
    if text is None:
        return f"Missing translation: {key}"
    return text.format(**kwargs) if kwargs else text

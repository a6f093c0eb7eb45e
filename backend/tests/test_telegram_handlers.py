import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from telegram.error import Forbidden

from support import PAST, add_medicine, memory_session_factory

from pharmabot.core.exceptions import StorageUnavailable
from pharmabot.models.order import Order, OrderStatus
from pharmabot.services.inventory_service import get_medicine
from pharmabot.telegram import handlers
from pharmabot.telegram.conversation import FlowStep, get_state

CHAT_ID = 555
USER_ID = 777


def make_update(text="", language_code="en"):
    update = MagicMock()
    update.effective_chat.id = CHAT_ID
    update.effective_user.id = USER_ID
    update.effective_user.language_code = language_code
    update.message.text = text
    update.message.reply_text = AsyncMock()
    return update


def make_context(args=None):
    context = MagicMock()
    context.args = args
    context.bot.send_message = AsyncMock()
    context.bot.link = "https://t.me/pharmacy_test_bot"
    return context


def last_reply(update):
    return update.message.reply_text.call_args.args[0]


class TelegramHandlersTest(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = memory_session_factory()
        self.db = self.Session()
        self.ibuprofen = add_medicine(self.db, "Ibuprofen 200mg", 100)
        self.expired = add_medicine(self.db, "Citalopram 20mg", 400, expiry_date=PAST)

        patcher = patch.object(handlers, "SessionLocal", self.Session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def run_handler(self, handler, text="", args=None, context=None, language_code="en"):
        update = make_update(text, language_code)
        context = context or make_context(args)
        asyncio.run(handler(update, context))
        return update, context

    def state(self):
        self.db.expire_all()
        return get_state(self.db, CHAT_ID)

    def stock(self, medicine):
        self.db.expire_all()
        return get_medicine(self.db, medicine.id).stock

    def test_start_without_payload(self):
        update, _ = self.run_handler(handlers.handle_start, "/start")
        self.assertEqual(last_reply(update), "Welcome to the pharmacy bot!")

    def test_start_in_spanish(self):
        update, _ = self.run_handler(handlers.handle_start, "/start", language_code="es-MX")
        self.assertEqual(last_reply(update), "¡Bienvenido al bot de farmacia!")

    def test_start_with_invalid_payload(self):
        update, _ = self.run_handler(handlers.handle_start, "/start abc", args=["abc"])
        self.assertEqual(last_reply(update), "Invalid link!")
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_anonymous_message_relay(self):
        self.run_handler(handlers.handle_start, "/start 12345", args=["12345"])
        self.assertEqual(self.state()["step"], FlowStep.WRITE_TO_PHARMACIST)

        update, context = self.run_handler(handlers.handle_text, "Do you have insulin?")
        context.bot.send_message.assert_awaited_once()
        kwargs = context.bot.send_message.call_args.kwargs
        self.assertEqual(kwargs["chat_id"], 12345)
        self.assertIn("Do you have insulin?", kwargs["text"])
        self.assertEqual(last_reply(update), "Message sent to the pharmacist!")
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_anonymous_message_blocked(self):
        self.run_handler(handlers.handle_start, "/start 12345", args=["12345"])
        context = make_context()
        context.bot.send_message.side_effect = Forbidden("bot was blocked by the user")

        update, _ = self.run_handler(handlers.handle_text, "hello", context=context)
        self.assertIn("blocked", last_reply(update))
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_message_link(self):
        update, _ = self.run_handler(handlers.handle_message_link, "/message")
        self.assertIn(f"https://t.me/pharmacy_test_bot?start={CHAT_ID}", last_reply(update))

    def test_inventory_hides_expired(self):
        update, _ = self.run_handler(handlers.handle_inventory, "/inventory")
        reply = last_reply(update)
        self.assertIn("Ibuprofen 200mg", reply)
        self.assertIn("Stock: 100 units", reply)
        self.assertNotIn("Citalopram", reply)

    def test_order_with_arguments_then_confirm(self):
        update, _ = self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg 2", args=["Ibuprofen", "200mg", "2"])
        self.assertIn("Order 2 x Ibuprofen 200mg?", last_reply(update))
        self.assertEqual(self.state()["step"], FlowStep.AWAIT_CONFIRMATION)

        update, _ = self.run_handler(handlers.handle_confirm, "/confirm")
        self.assertIn("has been placed", last_reply(update))
        self.assertEqual(self.stock(self.ibuprofen), 98)
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

        order = self.db.query(Order).one()
        self.assertEqual(order.user_id, str(USER_ID))
        self.assertEqual(order.quantity, 2)
        self.assertIn(f"Order ID: {order.id}", last_reply(update))

    def test_order_step_by_step(self):
        update, _ = self.run_handler(handlers.handle_order, "/order")
        self.assertEqual(last_reply(update), "Which medicine would you like to order? Send its name or ID.")

        update, _ = self.run_handler(handlers.handle_text, "unobtainium")
        self.assertIn("couldn't find", last_reply(update))
        self.assertEqual(self.state()["step"], FlowStep.AWAIT_MEDICINE)

        update, _ = self.run_handler(handlers.handle_text, "ibuprofen")
        self.assertEqual(last_reply(update), "How many units of Ibuprofen 200mg do you need?")

        update, _ = self.run_handler(handlers.handle_text, "a few")
        self.assertEqual(last_reply(update), "Please send a positive whole number.")
        self.assertEqual(self.state()["step"], FlowStep.AWAIT_QUANTITY)

        self.run_handler(handlers.handle_text, "3")
        self.assertEqual(self.state()["data"]["quantity"], 3)

        update, _ = self.run_handler(handlers.handle_text, "yes")
        self.assertIn("has been placed", last_reply(update))
        self.assertEqual(self.stock(self.ibuprofen), 97)

    def test_insufficient_stock_reply(self):
        self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg 1000", args=["Ibuprofen", "200mg", "1000"])
        update, _ = self.run_handler(handlers.handle_confirm, "/confirm")

        self.assertEqual(last_reply(update), "Insufficient stock: 100 units available")
        self.assertEqual(self.stock(self.ibuprofen), 100)
        self.assertEqual(self.db.query(Order).count(), 0)
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_expired_medicine_reply(self):
        self.run_handler(handlers.handle_order, "/order Citalopram 20mg 1", args=["Citalopram", "20mg", "1"])
        with patch.object(handlers.settings, "REJECT_EXPIRED_ORDERS", True):
            update, _ = self.run_handler(handlers.handle_confirm, "/confirm")

        self.assertIn("Citalopram 20mg expired on", last_reply(update))
        self.assertEqual(self.stock(self.expired), 400)

    def test_storage_failure_keeps_flow(self):
        self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg 2", args=["Ibuprofen", "200mg", "2"])
        with patch.object(handlers, "place_order", side_effect=StorageUnavailable()):
            update, _ = self.run_handler(handlers.handle_confirm, "/confirm")

        self.assertEqual(last_reply(update), "Something went wrong on our side. Please try again in a moment.")
        self.assertEqual(self.state()["step"], FlowStep.AWAIT_CONFIRMATION)

    def test_confirm_without_flow(self):
        update, _ = self.run_handler(handlers.handle_confirm, "/confirm")
        self.assertEqual(last_reply(update), "There is no order to confirm. Start one with /order.")

    def test_cancel_flow(self):
        self.run_handler(handlers.handle_order, "/order")
        update, _ = self.run_handler(handlers.handle_cancel, "/cancel")
        self.assertEqual(last_reply(update), "Order cancelled. Nothing was placed.")
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_cancel_with_nothing_active(self):
        update, _ = self.run_handler(handlers.handle_cancel, "/cancel")
        self.assertEqual(last_reply(update), "There is nothing to cancel.")

    def test_cancel_pending_order_returns_stock(self):
        self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg 5", args=["Ibuprofen", "200mg", "5"])
        self.run_handler(handlers.handle_confirm, "/confirm")
        order = self.db.query(Order).one()
        self.assertEqual(self.stock(self.ibuprofen), 95)

        update, _ = self.run_handler(handlers.handle_cancel, f"/cancel {order.id}", args=[str(order.id)])
        self.assertEqual(last_reply(update), f"Order {order.id} has been cancelled.")
        self.assertEqual(self.stock(self.ibuprofen), 100)

        self.db.expire_all()
        self.assertEqual(self.db.query(Order).one().status, OrderStatus.CANCELLED)

    def test_orders_listing(self):
        update, _ = self.run_handler(handlers.handle_orders, "/orders")
        self.assertEqual(last_reply(update), "You have no orders yet.")

        self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg 2", args=["Ibuprofen", "200mg", "2"])
        self.run_handler(handlers.handle_confirm, "/confirm")
        update, _ = self.run_handler(handlers.handle_orders, "/orders")
        self.assertIn("Ibuprofen 200mg x2 • pending", last_reply(update))

    def test_idle_free_text(self):
        update, _ = self.run_handler(handlers.handle_text, "hello there")
        self.assertIn("/help", last_reply(update))

    def test_menu_button_opens_inventory(self):
        update, _ = self.run_handler(handlers.handle_text, "📋 Check Inventory")
        self.assertIn("Ibuprofen 200mg", last_reply(update))

    def test_unknown_command(self):
        update, _ = self.run_handler(handlers.handle_unknown_command, "/frobnicate")
        self.assertIn("I don't understand that command", last_reply(update))

    def test_start_with_malformed_chat_id(self):
        for payload in ("--5", "5-", "-"):
            with self.subTest(payload=payload):
                update, _ = self.run_handler(handlers.handle_start, f"/start {payload}", args=[payload])
                self.assertEqual(last_reply(update), "Invalid link!")
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

    def test_start_with_negative_group_chat_id(self):
        self.run_handler(handlers.handle_start, "/start -1001234", args=["-1001234"])
        self.assertEqual(self.state()["data"]["pharmacist_chat_id"], -1001234)

    def test_superscript_digits_are_not_numbers(self):
        update, _ = self.run_handler(handlers.handle_order, "/order Ibuprofen ²", args=["Ibuprofen", "²"])
        self.assertIn("couldn't find", last_reply(update))

        update, _ = self.run_handler(handlers.handle_order, "/order ²", args=["²"])
        self.assertIn("couldn't find", last_reply(update))

        self.run_handler(handlers.handle_order, "/order Ibuprofen 200mg", args=["Ibuprofen", "200mg"])
        update, _ = self.run_handler(handlers.handle_text, "²")
        self.assertEqual(last_reply(update), "Please send a positive whole number.")
        self.assertEqual(self.state()["step"], FlowStep.AWAIT_QUANTITY)

        update, _ = self.run_handler(handlers.handle_cancel, "/cancel ²", args=["²"])
        self.assertEqual(last_reply(update), "There is nothing to cancel.")

    def test_cancel_disarms_pharmacist_relay(self):
        self.run_handler(handlers.handle_start, "/start 12345", args=["12345"])
        update, _ = self.run_handler(handlers.handle_cancel, "/cancel")
        self.assertEqual(last_reply(update), "Message cancelled. Nothing was sent to the pharmacist.")
        self.assertEqual(self.state()["step"], FlowStep.IDLE)

        update, context = self.run_handler(handlers.handle_text, "this stays here")
        context.bot.send_message.assert_not_awaited()
        self.assertIn("I don't understand", last_reply(update))

    def test_expired_medicine_allowed_when_configured(self):
        self.run_handler(handlers.handle_order, "/order Citalopram 20mg 1", args=["Citalopram", "20mg", "1"])
        with patch.object(handlers.settings, "REJECT_EXPIRED_ORDERS", False):
            update, _ = self.run_handler(handlers.handle_confirm, "/confirm")

        self.assertIn("has been placed", last_reply(update))
        self.assertEqual(self.stock(self.expired), 399)

    def test_inventory_storage_failure(self):
        with patch.object(handlers, "list_medicines", side_effect=StorageUnavailable()):
            update, _ = self.run_handler(handlers.handle_inventory, "/inventory")
        self.assertEqual(last_reply(update), "Something went wrong on our side. Please try again in a moment.")


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

from telegram.constants import ParseMode
from telegram.error import NetworkError

from support import add_medicine, memory_session_factory

from pharmabot.models.medicine import Medicine
from pharmabot.services import expiry_alerts

TODAY = date(2025, 1, 1)


class ExpiryAlertsTest(unittest.TestCase):
    def setUp(self):
        self.engine, Session = memory_session_factory()
        self.db = Session()
        add_medicine(self.db, "Ibuprofen 200mg", 80, expiry_date=TODAY + timedelta(days=10))
        add_medicine(self.db, "Citalopram 20mg", 40, expiry_date=TODAY - timedelta(days=3))
        add_medicine(self.db, "Metformin 500mg", 60, expiry_date=TODAY + timedelta(days=400))

        patcher = patch.object(expiry_alerts, "SessionLocal", Session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_fetch_expiring_soonest_first(self):
        names = [m.name for m in expiry_alerts.fetch_expiring_medicines(self.db, 180, TODAY)]
        self.assertEqual(names, ["Citalopram 20mg", "Ibuprofen 200mg"])

    def test_format_expiry_alert(self):
        medicine = Medicine(name="Vitamin C (500mg)", stock=3, expiry_date=date(2025, 1, 10))
        text = expiry_alerts.format_expiry_alert(medicine, TODAY)
        self.assertIn("*Name:* `Vitamin C (500mg)`", text)
        self.assertIn("*Expiry Date:* `10-01-2025`", text)
        self.assertIn("*Days until expiry:* `9`", text)
        self.assertIn("*Quantity:* `3`", text)
        self.assertTrue(text.endswith("appropriate action\\."))

    def test_sends_one_alert_per_medicine(self):
        bot = AsyncMock()
        sent = asyncio.run(expiry_alerts.check_and_notify_expiring_medicines(bot, -100, 180, TODAY))

        self.assertEqual(sent, 2)
        self.assertEqual(bot.send_message.await_count, 2)
        for call in bot.send_message.call_args_list:
            self.assertEqual(call.kwargs["chat_id"], -100)
            self.assertEqual(call.kwargs["parse_mode"], ParseMode.MARKDOWN_V2)

    def test_failed_send_does_not_stop_the_batch(self):
        bot = AsyncMock()
        bot.send_message.side_effect = [NetworkError("timed out"), None]

        with self.assertLogs("pharmabot.services.expiry_alerts", level="ERROR") as logs:
            sent = asyncio.run(expiry_alerts.check_and_notify_expiring_medicines(bot, -100, 180, TODAY))

        self.assertEqual(sent, 1)
        self.assertEqual(bot.send_message.await_count, 2)
        self.assertIn("Citalopram 20mg", logs.output[0])

    def test_nothing_expiring(self):
        bot = AsyncMock()
        sent = asyncio.run(expiry_alerts.check_and_notify_expiring_medicines(bot, -100, 0, date(2000, 1, 1)))
        self.assertEqual(sent, 0)
        bot.send_message.assert_not_awaited()


class ExpirySchedulerTest(unittest.TestCase):
    def test_disabled_without_group_chat(self):
        with patch.object(expiry_alerts.settings, "PHARMACY_GROUP_CHAT_ID", None):
            self.assertFalse(expiry_alerts.start_expiry_scheduler(AsyncMock()))

    def test_runs_a_scan_then_stops(self):
        check = AsyncMock(return_value=0)

        async def scenario():
            self.assertTrue(expiry_alerts.start_expiry_scheduler(AsyncMock()))
            await asyncio.sleep(0.01)
            expiry_alerts.stop_expiry_scheduler()

        with patch.object(expiry_alerts.settings, "PHARMACY_GROUP_CHAT_ID", -100), \
                patch.object(expiry_alerts.settings, "EXPIRY_SCAN_INTERVAL_SECONDS", 3600), \
                patch.object(expiry_alerts, "check_and_notify_expiring_medicines", check):
            asyncio.run(scenario())

        check.assert_awaited_once()
        self.assertEqual(check.call_args.args[1], -100)


if __name__ == "__main__":
    unittest.main()

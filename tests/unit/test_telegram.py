"""
Unit tests for Telegram sync failure alerts.

Run: pytest tests/unit/test_telegram.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from config import settings
from exceptions import TelegramError
from integrations.telegram import format_sync_failure_message, send_message, send_sync_failure_alert
from models.sync import SyncRunReport, SyncState, SyncSummary


def failed_report(**overrides) -> SyncRunReport:
    values = {
        "price_list_id": "pl-1",
        "success": False,
        "state": SyncState.FAILED,
        "dry_run": False,
        "summary": SyncSummary(variants_to_update=5),
        "rolled_back_count": 2,
        "error": "Database update failed: timeout",
    }
    values.update(overrides)
    return SyncRunReport(**values)


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "telegram_bot_token", "token")
    monkeypatch.setattr(settings, "telegram_chat_id", "chat")


def telegram_response(ok: bool = True, description: str = "") -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"ok": ok, "description": description, "result": {"message_id": 7}}
    return response


class TestFormatMessage:

    def test_failed_run(self):
        """Should include supplier, list, counts and error."""
        message = format_sync_failure_message(failed_report(), "Acme Parts", "Spring 2026")

        assert message.startswith("⚠️ *Price sync failed*")
        assert "Supplier: Acme Parts" in message
        assert "Price list: Spring 2026" in message
        assert "Planned updates: 5" in message
        assert "Rolled back: 2" in message
        assert "Error: `Database update failed: timeout`" in message

    def test_manual_review(self):
        """Should use the manual review header and hint."""
        message = format_sync_failure_message(failed_report(requires_manual_review=True))

        assert "*Price sync needs manual review*" in message
        assert "Price list: pl-1" in message
        assert "Some prices could not be reverted" in message


class TestSendMessage:

    def test_not_configured(self):
        """Should skip sending without credentials."""
        with patch("integrations.telegram.requests.post") as post:
            assert send_message("hello") is False

        post.assert_not_called()

    def test_sends(self, configured):
        """Should post to the bot API."""
        with patch("integrations.telegram.requests.post", return_value=telegram_response()) as post:
            assert send_message("hello") is True

        url = post.call_args.args[0]
        assert url == "https://api.telegram.org/bottoken/sendMessage"
        assert post.call_args.kwargs["json"]["chat_id"] == "chat"

    def test_api_error_raises(self, configured):
        """Should raise TelegramError when the API says not ok."""
        with patch("integrations.telegram.requests.post", return_value=telegram_response(False, "bad chat")):
            with pytest.raises(TelegramError) as exc_info:
                send_message("hello")

        assert exc_info.value.code == "TELEGRAM_ERROR"
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Telegram API error: bad chat"

    def test_request_failure_raises(self, configured):
        """Should raise TelegramError on transport failures."""
        with patch("integrations.telegram.requests.post", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(TelegramError):
                send_message("hello")


class TestSyncFailureAlert:

    def test_delivery_failure_returns_false(self, configured):
        """Should swallow delivery failures and report False."""
        with patch("integrations.telegram.requests.post", side_effect=requests.exceptions.Timeout("slow")):
            assert send_sync_failure_alert(failed_report()) is False

    def test_alert_sent(self, configured):
        """Should report True once delivered."""
        with patch("integrations.telegram.requests.post", return_value=telegram_response()):
            assert send_sync_failure_alert(failed_report(), "Acme Parts") is True

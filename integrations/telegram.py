"""
Telegram bot integration for sync failure alerts.

Sends a message when a price sync fails, and a louder one when reverting
applied prices failed and the catalog needs manual review.
"""

from typing import Optional
import requests
import structlog

from config import settings
from exceptions import TelegramError
from models.sync import SyncRunReport

logger = structlog.get_logger(__name__)


FAILED_EMOJI = "⚠️"
MANUAL_REVIEW_EMOJI = "\U0001f6a8"


def get_telegram_config() -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    bot_token = settings.telegram_bot_token
    chat_id = settings.telegram_chat_id

    if not settings.telegram_configured:
        logger.warning(
            "telegram_not_configured",
            has_token=bool(bot_token),
            has_chat_id=bool(chat_id)
        )

    return bot_token, chat_id


def format_sync_failure_message(
    report: SyncRunReport,
    supplier_name: Optional[str] = None,
    price_list_name: Optional[str] = None,
) -> str:
    """Format a failed sync run as a Telegram message."""
    if report.requires_manual_review:
        header = f"{MANUAL_REVIEW_EMOJI} *Price sync needs manual review*"
    else:
        header = f"{FAILED_EMOJI} *Price sync failed*"

    lines = [header, ""]
    if supplier_name:
        lines.append(f"Supplier: {supplier_name}")
    lines.append(f"Price list: {price_list_name or report.price_list_id}")
    lines.append(f"State: {report.state.value}")
    lines.append("")
    lines.append(f"Planned updates: {report.summary.variants_to_update}")
    lines.append(f"Rolled back: {report.rolled_back_count}")

    if report.error:
        lines.append("")
        lines.append(f"Error: `{report.error}`")

    if report.requires_manual_review:
        lines.append("")
        lines.append("Some prices could not be reverted. Check the catalog before the next sync.")

    return "\n".join(lines)


def send_message(message: str, parse_mode: str = "Markdown") -> bool:
    """
    Send message to Telegram.

    Args:
        message: Message text to send
        parse_mode: Telegram parse mode (Markdown or HTML)

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config()

    if not bot_token or not chat_id:
        logger.warning("telegram_not_configured_skipping_send")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        logger.info("sending_telegram_message", chat_id=chat_id)

        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()

        result = response.json()

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(f"Failed to send Telegram message: {str(e)}")


def send_sync_failure_alert(
    report: SyncRunReport,
    supplier_name: Optional[str] = None,
    price_list_name: Optional[str] = None,
) -> bool:
    """
    Alert about a failed sync run.

    Delivery problems are logged and reported as False; they never change
    the outcome of the sync.
    """
    message = format_sync_failure_message(report, supplier_name, price_list_name)
    try:
        return send_message(message)
    except TelegramError as e:
        logger.error(
            "sync_failure_alert_not_sent",
            price_list_id=report.price_list_id,
            error=e.message
        )
        return False

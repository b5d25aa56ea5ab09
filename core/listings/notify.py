"""
Submission Notifications

Posts a Telegram message to the admin chat when a property request is
submitted. Delivery is best effort: a failure is logged and reported as
False, never raised, so a submission always succeeds independently of
the notification channel.
"""

from __future__ import annotations

import logging
from typing import Final, Optional, Protocol

import requests

from core.listings.schema import PropertyRequest, SubmitterType
from utils.formatting import format_area, format_currency, format_gst


logger = logging.getLogger(__name__)

TELEGRAM_API_URL: Final[str] = "https://api.telegram.org"
DEFAULT_TIMEOUT: Final[int] = 10

SUBMITTER_LABELS: Final[dict[SubmitterType, str]] = {
    SubmitterType.OWNER: "Owner",
    SubmitterType.BROKER: "Broker",
    SubmitterType.REFERRAL: "Referral",
}


class Notifier(Protocol):
    """Anything that can announce a new property request."""

    def notify_request_submitted(self, request: PropertyRequest) -> bool: ...


def _or_na(value) -> str:
    return str(value) if value not in (None, "") else "N/A"


def format_request_message(request: PropertyRequest) -> str:
    """Render the admin chat message for a new property request."""
    price = format_currency(request.price) if request.price is not None else "N/A"
    submitter = SUBMITTER_LABELS.get(request.submitter_type, request.submitter_type.value)

    lines = [
        "🏠 *New Property Request*",
        "",
        f"*Title:* {request.title}",
        f"*Type:* {request.type.value.upper()} - {_or_na(request.property_type)}",
        f"*Price:* {price}",
        f"*Location:* {_or_na(request.emirate)} - {_or_na(request.location)}",
        f"*Size:* {_or_na(request.bedrooms)} BR, {_or_na(request.bathrooms)} BA",
        f"*Area:* {format_area(request.area)}",
        "",
        f"*Submitter:* {request.contact_name} ({submitter})",
        f"*Email:* {request.contact_email}",
        f"*Phone:* {_or_na(request.contact_phone)}",
        "",
        f"*Request ID:* `{request.id}`",
        f"*Submitted:* {format_gst(request.created_at)}",
    ]
    return "\n".join(lines)


class TelegramNotifier:
    """Sends submission alerts through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage"

    def notify_request_submitted(self, request: PropertyRequest) -> bool:
        """
        Post the request summary to the admin chat.

        Returns:
            True if Telegram accepted the message
        """
        payload = {
            "chat_id": self._chat_id,
            "text": format_request_message(request),
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        try:
            response = self._session.post(self.endpoint, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            logger.warning("Telegram notification for %s failed: %s", request.id, e)
            return False

        if not response.ok:
            logger.warning(
                "Telegram API rejected notification for %s: HTTP %s %s",
                request.id,
                response.status_code,
                response.text[:200],
            )
            return False

        logger.info("Telegram notification sent for request %s", request.id)
        return True


class NullNotifier:
    """Used when no notification channel is configured."""

    def notify_request_submitted(self, request: PropertyRequest) -> bool:
        logger.debug("Notifications disabled; skipping request %s", request.id)
        return False

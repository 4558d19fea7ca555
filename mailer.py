import re
import time
from typing import Any, Dict

import requests
import structlog

import settings

logger = structlog.get_logger(__name__)


class EmailDeliveryError(Exception):
    pass


def html_to_text(html_body: str) -> str:
    text = re.sub(r"<[^>]+>", "", html_body)
    text = re.sub(r"&nbsp;", " ", text, flags=re.I)
    text = re.sub(r"&amp;", "&", text, flags=re.I)
    return re.sub(r"\s+", " ", text).strip()


def build_payload(to: str, subject: str, html_body: str) -> Dict[str, Any]:
    recipient = to.strip().lower()
    sender = {"name": settings.EMAIL_SENDER_NAME, "email": settings.EMAIL_SENDER}
    return {
        "sender": sender,
        "to": [{"email": recipient, "name": recipient.split("@")[0]}],
        "subject": subject,
        "htmlContent": html_body,
        "textContent": html_to_text(html_body),
        "replyTo": sender,
    }


def send_email(to: str, subject: str, html_body: str, retries: int = settings.EMAIL_RETRIES) -> Dict[str, Any]:
    """Send one email through Brevo, retrying transient failures with a linear backoff.

    Returns ``{"success": True, "message_id": ...}``. Raises EmailDeliveryError when
    the key is missing, Brevo rejects the request (401/400), or every attempt fails.
    """
    if not settings.BREVO_API_KEY:
        raise EmailDeliveryError("Brevo API key is not configured")
    if not to or not subject or not html_body:
        raise EmailDeliveryError("Invalid email parameters")

    payload = build_payload(to, subject, html_body)
    headers = {
        "api-key": settings.BREVO_API_KEY,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

    for attempt in range(1, retries + 1):
        logger.info("email_send_attempt", to=to, attempt=attempt, retries=retries)
        try:
            response = requests.post(
                settings.BREVO_API_URL,
                json=payload,
                headers=headers,
                timeout=settings.EMAIL_TIMEOUT_SECONDS,
            )
            if response.status_code == 401:
                raise EmailDeliveryError("Invalid Brevo API key")
            if response.status_code == 400:
                raise EmailDeliveryError(f"Invalid email parameters: {response.text}")
            response.raise_for_status()
            message_id = response.json().get("messageId")
            logger.info("email_sent", to=to, message_id=message_id)
            return {"success": True, "message_id": message_id}
        except requests.RequestException as exc:
            logger.warning("email_send_failed", to=to, attempt=attempt, error=str(exc))
            if attempt == retries:
                raise EmailDeliveryError(f"Email delivery failed after {retries} attempts: {exc}") from exc
            time.sleep(attempt)

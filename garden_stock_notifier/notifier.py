"""WhatsApp notifier.

Sends stock alerts to a single WhatsApp number through the Twilio
Messages REST API.  If any Twilio setting is missing, sending is disabled:
alerts are logged instead and reported as not delivered.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests

from . import config
from .utils import HTTPError, get_http_session, retryable_request

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 20


@retryable_request(attempts=config.SEND_MAX_ATTEMPTS)
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


def is_configured() -> bool:
    return config.twilio_configured()


def _messages_endpoint(account_sid: str) -> str:
    return f"{config.TWILIO_API_BASE.rstrip('/')}/Accounts/{account_sid}/Messages.json"


def _whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


def send_whatsapp_alert(body: str, session: Optional[requests.Session] = None) -> bool:
    """Send ``body`` to the configured recipient. Returns True on delivery to Twilio."""
    if not is_configured():
        logger.warning("Twilio not configured; cannot send WhatsApp alert. Message body:\n%s", body)
        return False

    close_session = False
    if session is None:
        # Twilio is reached directly; PROXY_URL is only for the stock source.
        session = get_http_session()
        close_session = True

    try:
        resp = _post(
            session,
            _messages_endpoint(config.TWILIO_ACCOUNT_SID),
            data={
                "From": _whatsapp_address(config.TWILIO_WHATSAPP_SANDBOX_NUMBER),
                "To": _whatsapp_address(config.YOUR_WHATSAPP_NUMBER),
                "Body": body,
            },
            auth=(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN),
            timeout=SEND_TIMEOUT_SECONDS,
        )
    except HTTPError as e:
        logger.error("Twilio rejected WhatsApp alert (status %s): %s", e.status_code, e)
        return False
    except requests.RequestException as e:
        logger.error("Error sending WhatsApp alert via Twilio: %s", e)
        return False
    finally:
        if close_session:
            session.close()

    sid = ""
    try:
        sid = resp.json().get("sid", "")
    except ValueError:
        pass
    logger.info("WhatsApp alert accepted by Twilio (sid=%s)", sid or "n/a")
    return True


__all__ = ["send_whatsapp_alert", "is_configured"]

# slotpay/services/twilio_client.py
import logging

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ..config import Settings

logger = logging.getLogger(__name__)


def _normalize_wa(number: str) -> str:
    if not number:
        return number
    number = number.strip()
    if not number.startswith("whatsapp:"):
        number = f"whatsapp:{number}"
    number = number.replace("whatsapp: ", "whatsapp:")
    prefix, rest = number.split(":", 1)
    rest = rest.strip().replace(" ", "")
    if not rest.startswith("+"):
        rest = "+" + rest
    return f"{prefix}:{rest}"


def get_twilio_client(settings: Settings) -> Client | None:
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        return None
    return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)


def send_whatsapp(settings: Settings, to: str, body: str, client: Client | None = None) -> dict:
    """
    Envía un WhatsApp usando Twilio.
    - Si DRY_RUN=true: no envía; loguea y regresa {"dry_run": True, ...}
    - Si faltan credenciales: modo MOCK (no envía) y regresa {"mock": True, ...}
    - Si hay error al enviar: registra y regresa {"error": "..."}
    """
    to_norm = _normalize_wa(to)
    from_norm = _normalize_wa(settings.TWILIO_WHATSAPP_FROM or "")
    one_line = body.replace("\n", " | ")

    if settings.DRY_RUN:
        logger.info("[DRY_RUN WHATSAPP] to=%s body=%s", to_norm, one_line)
        return {"dry_run": True, "to": to_norm, "body": body}

    client = client or get_twilio_client(settings)

    if client is None or not from_norm:
        logger.info("[WA MOCK] to=%s body=%s", to_norm, one_line)
        return {"mock": True, "to": to_norm, "body": body}

    try:
        msg = client.messages.create(from_=from_norm, to=to_norm, body=body)
        return {"sid": msg.sid, "to": to_norm}
    except (TwilioException, requests.RequestException) as e:
        logger.warning("[WA ERROR] to=%s err=%s", to_norm, e)
        return {"error": str(e), "to": to_norm}

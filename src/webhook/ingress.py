"""WhatsApp webhook ingress for 360dialog deliveries.

Normalizes the provider envelope into a single IncomingMessage. Two shapes
are accepted:

- Cloud API: ``entry[0].changes[0].value.messages[0]``
- Legacy (on-premise API): ``messages[0]`` at the top level

Status callbacks (delivered, read, ...) carry no message and are ignored.
Nothing here raises on bad input: anything unusable resolves to ``None``
so the caller can still acknowledge the delivery.
"""

from __future__ import annotations

import hmac
import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from src.models import IncomingMessage, MessageKind

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D+")


def normalize_sender_id(raw: object) -> str:
    """Strip everything but digits from a subscriber identifier."""
    if raw is None:
        return ""
    return _NON_DIGITS.sub("", str(raw))


def parse_body(raw: bytes) -> dict[str, Any] | None:
    """Decode a webhook body, returning None for anything but a JSON object."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _first(items: object) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _locate_value(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the object that holds ``messages``/``contacts`` for either shape."""
    entry = _first(payload.get("entry"))
    if entry:
        change = _first(entry.get("changes"))
        value = change.get("value")
        return value if isinstance(value, dict) else {}
    return payload


def extract_message(payload: object) -> IncomingMessage | None:
    """Extract the first message of a webhook delivery.

    Returns None for status callbacks, malformed payloads and messages
    without a usable sender.
    """
    if not isinstance(payload, dict):
        return None

    try:
        value = _locate_value(payload)
        msg = _first(value.get("messages"))
        if not msg:
            return None

        contact = _first(value.get("contacts"))
        sender_id = normalize_sender_id(msg.get("from") or contact.get("wa_id"))
        if not sender_id:
            return None

        # Optional metadata never disqualifies an otherwise usable message
        raw_id = msg.get("id")
        profile = contact.get("profile")
        profile_name = profile.get("name") if isinstance(profile, dict) else None
        common: dict[str, Any] = {
            "sender_id": sender_id,
            "message_id": str(raw_id) if raw_id is not None else None,
            "profile_name": profile_name if isinstance(profile_name, str) else None,
        }

        msg_type = msg.get("type")
        if msg_type == "text":
            text_obj = msg.get("text")
            body = text_obj.get("body") if isinstance(text_obj, dict) else None
            if not isinstance(body, str) or not body.strip():
                return None
            return IncomingMessage(kind=MessageKind.TEXT, text=body.strip(), **common)

        if msg_type == "image":
            image = msg.get("image")
            media_id = image.get("id") if isinstance(image, dict) else None
            if media_id:
                return IncomingMessage(
                    kind=MessageKind.IMAGE, media_ref=str(media_id), **common,
                )

        return IncomingMessage(kind=MessageKind.UNSUPPORTED, **common)
    except (AttributeError, TypeError, ValidationError) as exc:
        logger.info("Ignoring unparseable webhook payload: %s", exc)
        return None


def handle_verification(
    params: dict[str, str], verify_token: str,
) -> dict[str, Any] | None:
    """Handle a Meta-style webhook verification challenge (GET).

    Returns the challenge on a valid subscribe, 403 on a wrong token and
    None for any other mode.
    """
    mode = params.get("hub.mode")
    if mode != "subscribe":
        return None

    token = params.get("hub.verify_token", "")
    if hmac.compare_digest(token, verify_token):
        return {
            "status_code": 200,
            "content": params.get("hub.challenge", ""),
        }
    return {"status_code": 403, "error": "Invalid verify token"}

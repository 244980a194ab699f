"""Shared test fixtures for kali-relay."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.estimator.estimator import CalorieEstimator, load_food_table
from src.models import FoodEntry, FoodSpec, FoodUnit, IncomingMessage, MessageKind

CONFIG_DIR = Path(__file__).parent.parent / "config"
FOOD_TABLE_PATH = CONFIG_DIR / "food-table.json"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def food_table() -> list[FoodSpec]:
    return load_food_table(FOOD_TABLE_PATH)


@pytest.fixture
def estimator(food_table: list[FoodSpec]) -> CalorieEstimator:
    return CalorieEstimator(food_table)


# --- Factory functions for test data ---


def make_incoming_message(**kwargs: Any) -> IncomingMessage:
    """Factory for IncomingMessage with sensible defaults."""
    defaults: dict[str, Any] = {
        "sender_id": "5542999999999",
        "kind": MessageKind.TEXT,
        "text": "oi",
        "message_id": "wamid.TEST",
    }
    defaults.update(kwargs)
    return IncomingMessage(**defaults)


def make_food_entry(**kwargs: Any) -> FoodEntry:
    """Factory for FoodEntry with sensible defaults."""
    defaults: dict[str, Any] = {
        "label": "ovo",
        "quantity": 1,
        "unit": FoodUnit.UNIT,
        "kcal": 70,
    }
    defaults.update(kwargs)
    return FoodEntry(**defaults)


def make_cloud_payload(
    text: str = "oi",
    sender: str = "5542999999999",
    msg_type: str = "text",
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Cloud API webhook envelope carrying a single message."""
    message: dict[str, Any] = {
        "from": sender,
        "id": "wamid.TEST",
        "timestamp": "1700000000",
        "type": msg_type,
    }
    if msg_type == "text":
        message["text"] = {"body": text}
    if extra:
        message.update(extra)
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_ID"},
                            "contacts": [
                                {"profile": {"name": "Maria"}, "wa_id": sender},
                            ],
                            "messages": [message],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def make_legacy_payload(
    text: str = "oi",
    sender: str = "5542999999999",
) -> dict[str, Any]:
    """Legacy on-premise webhook envelope with top-level messages."""
    return {
        "contacts": [{"profile": {"name": "Maria"}, "wa_id": sender}],
        "messages": [
            {
                "from": sender,
                "id": "wamid.TEST",
                "timestamp": "1700000000",
                "type": "text",
                "text": {"body": text},
            }
        ],
    }


def make_status_payload() -> dict[str, Any]:
    """Delivery receipt webhook: statuses only, no messages."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_ID"},
                            "statuses": [
                                {
                                    "id": "wamid.TEST",
                                    "status": "delivered",
                                    "recipient_id": "5542999999999",
                                }
                            ],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def make_http_response(status_code: int = 200, text: str = "{}") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


def make_async_client_mock(post: Any) -> AsyncMock:
    """AsyncMock usable as ``async with httpx.AsyncClient() as client``.

    ``post`` is either a single response or a list used as side effects.
    """
    client = AsyncMock()
    if isinstance(post, list):
        client.post.side_effect = post
    else:
        client.post.return_value = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client

"""Outbound reply dispatcher for the 360dialog send API.

360dialog tenants disagree on the exact request shape they accept (Cloud
API envelope with ``messaging_product``, a bare envelope, or the legacy
``/v1/messages`` path). The dispatcher walks an ordered list of request
variants and stops at the first 2xx.

Per call: Pending -> Attempting(variant i) -> Success | Attempting(i + 1)
-> ... -> ExhaustedFailure.

A variant that times out may still have been delivered, so a later
variant can produce a duplicate message for the end user. That is
accepted; there is no deduplication.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from src.models import (
    AuditEvent,
    AuditEventType,
    DispatchAttempt,
    DispatchOutcome,
    DispatchResult,
    OutboundReply,
)
from src.webhook.ingress import normalize_sender_id

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4000
DEFAULT_BASE_URL = "https://waba-v2.360dialog.io"
_DEFAULT_TIMEOUT_SECONDS = 10.0
_MAX_LOGGED_BODY = 500


@dataclass(frozen=True)
class Variant:
    """One request shape: a path under the base URL and a payload builder."""

    name: str
    path: str
    build_payload: Callable[[str, str], dict[str, Any]]


def _cloud_payload(recipient_id: str, body: str) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": recipient_id,
        "type": "text",
        "text": {"body": body},
    }


def _bare_payload(recipient_id: str, body: str) -> dict[str, Any]:
    return {"to": recipient_id, "type": "text", "text": {"body": body}}


def default_variants() -> list[Variant]:
    return [
        Variant(name="cloud", path="/messages", build_payload=_cloud_payload),
        Variant(name="cloud-bare", path="/messages", build_payload=_bare_payload),
        Variant(name="legacy", path="/v1/messages", build_payload=_bare_payload),
    ]


def truncate_body(body: str, limit: int = MAX_TEXT_LENGTH) -> str:
    return body if len(body) <= limit else body[:limit]


class Dispatcher:
    """Sends text replies through the first request variant the provider accepts."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        variants: list[Variant] | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._variants = list(variants) if variants is not None else default_variants()
        if not self._variants:
            raise ValueError("Dispatcher needs at least one variant")
        self._timeout = timeout
        self._audit = audit_logger

    @property
    def variants(self) -> list[Variant]:
        return list(self._variants)

    async def send_reply(self, reply: OutboundReply) -> DispatchResult:
        return await self.send(reply.recipient_id, reply.body)

    async def send(self, recipient_id: str, body: str) -> DispatchResult:
        """Deliver ``body`` to ``recipient_id``; never raises for provider failures."""
        to = normalize_sender_id(recipient_id)
        text = truncate_body(body)
        if len(text) < len(body):
            logger.info(
                "Truncated reply to %s from %d to %d chars", to, len(body), len(text),
            )

        headers = {
            "D360-API-KEY": self._api_key,
            "Content-Type": "application/json",
        }
        attempts: list[DispatchAttempt] = []

        async with httpx.AsyncClient(verify=True) as client:
            for variant in self._variants:
                attempt = await self._attempt(client, variant, to, text, headers)
                attempts.append(attempt)
                self._audit_attempt(to, attempt)
                if attempt.ok:
                    logger.info(
                        "Reply to %s delivered via variant %s (HTTP %s)",
                        to, variant.name, attempt.status_code,
                    )
                    self._audit_outcome(AuditEventType.DISPATCH_SUCCESS, to, attempts)
                    return DispatchResult(
                        outcome=DispatchOutcome.SUCCESS,
                        variant=variant.name,
                        response_body=attempt.response_body,
                        attempts=attempts,
                    )

        logger.error(
            "All %d send variants failed for %s: %s",
            len(attempts),
            to,
            "; ".join(
                f"{a.variant} {a.url} -> {a.status_code if a.status_code is not None else a.error}"
                for a in attempts
            ),
        )
        self._audit_outcome(AuditEventType.DISPATCH_EXHAUSTED, to, attempts)
        return DispatchResult(
            outcome=DispatchOutcome.EXHAUSTED_FAILURE,
            attempts=attempts,
        )

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        variant: Variant,
        to: str,
        text: str,
        headers: dict[str, str],
    ) -> DispatchAttempt:
        url = f"{self._base_url}{variant.path}"
        payload = variant.build_payload(to, text)
        try:
            resp = await client.post(
                url, json=payload, headers=headers, timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Send variant %s to %s failed: %s: %s",
                variant.name, url, type(exc).__name__, exc,
            )
            return DispatchAttempt(
                variant=variant.name,
                url=url,
                error=f"{type(exc).__name__}: {exc}",
            )

        attempt = DispatchAttempt(
            variant=variant.name,
            url=url,
            status_code=resp.status_code,
            response_body=resp.text,
        )
        if not attempt.ok:
            logger.warning(
                "Send variant %s to %s rejected: HTTP %s %s",
                variant.name, url, resp.status_code, resp.text[:_MAX_LOGGED_BODY],
            )
        return attempt

    def _audit_attempt(self, to: str, attempt: DispatchAttempt) -> None:
        if not self._audit:
            return
        self._audit.log(AuditEvent(
            event_type=AuditEventType.DISPATCH_ATTEMPT,
            action=attempt.variant,
            result="success" if attempt.ok else "failure",
            sender_id=to,
            details={
                "url": attempt.url,
                "status_code": attempt.status_code,
                "response_body": attempt.response_body[:_MAX_LOGGED_BODY],
                "error": attempt.error,
            },
        ))

    def _audit_outcome(
        self,
        event_type: AuditEventType,
        to: str,
        attempts: list[DispatchAttempt],
    ) -> None:
        if not self._audit:
            return
        self._audit.log(AuditEvent(
            event_type=event_type,
            action="send_text",
            result="success" if event_type == AuditEventType.DISPATCH_SUCCESS else "failure",
            sender_id=to,
            details={
                "attempts": [
                    {"variant": a.variant, "url": a.url, "status_code": a.status_code}
                    for a in attempts
                ],
            },
        ))

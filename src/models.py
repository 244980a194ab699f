"""Shared Pydantic data models for kali-relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

# --- Enums ---


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class FoodUnit(str, Enum):
    GRAM = "gram"
    MILLILITER = "milliliter"
    UNIT = "unit"


class DispatchOutcome(str, Enum):
    SUCCESS = "success"
    EXHAUSTED_FAILURE = "exhausted_failure"


class AuditEventType(str, Enum):
    WEBHOOK_RECEIVED = "webhook_received"
    WEBHOOK_IGNORED = "webhook_ignored"
    DISPATCH_ATTEMPT = "dispatch_attempt"
    DISPATCH_SUCCESS = "dispatch_success"
    DISPATCH_EXHAUSTED = "dispatch_exhausted"
    LLM_FAILURE = "llm_failure"


# --- Ingress Models ---


class IncomingMessage(BaseModel):
    """One normalized inbound event from the provider webhook."""

    model_config = ConfigDict(frozen=True)

    sender_id: str = Field(pattern=r"^\d+$")
    kind: MessageKind
    text: str | None = None
    media_ref: str | None = None
    message_id: str | None = None
    profile_name: str | None = None


# --- Estimator Models ---


class FoodSpec(BaseModel):
    """One row of the food table.

    ``kcal`` is per 100 g, per 100 ml or per unit depending on ``basis``.
    ``default_quantity`` is the portion assumed when the text states no
    amount, expressed in the basis unit. ``unit_weight`` (grams or ml per
    piece) lets a weighed food be counted and a counted food be weighed.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    label: str = Field(min_length=1)
    aliases: list[str] = Field(min_length=1)
    basis: FoodUnit
    kcal: float = Field(ge=0)
    default_quantity: float = Field(gt=0)
    unit_weight: float | None = Field(default=None, gt=0)


class FoodEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    quantity: float = Field(gt=0)
    unit: FoodUnit
    kcal: float = Field(ge=0)


class EstimateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: list[FoodEntry]
    total: float = Field(ge=0)


# --- Session Models ---


class DailyLog(BaseModel):
    """Food entries logged by one sender on one calendar day."""

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    entries: list[FoodEntry] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_kcal(self) -> float:
        return round(sum(e.kcal for e in self.entries), 1)


# --- Dispatch Models ---


class OutboundReply(BaseModel):
    model_config = ConfigDict(frozen=True)

    recipient_id: str
    body: str


class DispatchAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: str
    url: str
    status_code: int | None = None
    response_body: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


class DispatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: DispatchOutcome
    variant: str | None = None
    response_body: str | None = None
    attempts: list[DispatchAttempt]

    @property
    def succeeded(self) -> bool:
        return self.outcome == DispatchOutcome.SUCCESS


# --- LLM Models ---


class LLMResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    text: str = ""
    error: str | None = None


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    action: str
    result: str  # "success" | "failure" | "ignored"
    sender_id: str | None = None
    details: dict[str, object] | None = None

"""Message handler: turns one IncomingMessage into one dispatched reply.

Reply selection for text messages, first match wins:
1. Daily summary / reset commands
2. Quick intents (canned replies)
3. Calorie estimate when known foods are recognized
4. Clarifying prompt when the text reads like a meal but nothing matched
5. LLM answer with the sender's recent turns; static fallback on failure
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.bot.intents import is_reset_request, is_summary_request, quick_intent
from src.estimator.estimator import looks_like_meal
from src.llm.client import build_messages
from src.models import (
    AuditEvent,
    AuditEventType,
    DailyLog,
    DispatchResult,
    EstimateResult,
    FoodEntry,
    FoodUnit,
    IncomingMessage,
    MessageKind,
    OutboundReply,
)

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.dispatch.dispatcher import Dispatcher
    from src.estimator.estimator import CalorieEstimator
    from src.llm.client import LLMClient
    from src.session.store import ConversationHistory, MealJournal

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Você é a Kali, assistente de nutrologia. Fale em português, de forma "
    "breve, empática e profissional. Evite diagnósticos, mas explique de "
    "forma educativa e convide o paciente para avaliação se necessário."
)

LLM_FALLBACK_REPLY = (
    "Tive um problema ao gerar a resposta agora. Pode tentar de novo? 🙏"
)
MEAL_MISS_REPLY = (
    "Não consegui identificar os alimentos. 🤔 Tente descrever de outro jeito, "
    "com quantidades, por exemplo: *2 ovos e 1 pão francês* ou *150 g de arroz*."
)
IMAGE_REPLY = (
    "Recebi sua foto! ✅ Ainda não faço análise por imagem. "
    "Descreva o que comeu que eu estimo as calorias. 🍽️"
)
UNSUPPORTED_REPLY = "Mensagem recebida! ✅ (formato ainda não suportado)."
EMPTY_LOG_REPLY = "Você ainda não registrou refeições hoje. Me conte o que comeu! 🍽️"
RESET_REPLY = "Pronto, zerei o registro de hoje. ✅"

_UNIT_LABELS = {
    FoodUnit.GRAM: "g",
    FoodUnit.MILLILITER: "ml",
    FoodUnit.UNIT: "un",
}


def _fmt(value: float) -> str:
    return f"{value:g}"


def _format_entry(entry: FoodEntry) -> str:
    return (
        f"• {entry.label} ({_fmt(entry.quantity)} {_UNIT_LABELS[entry.unit]}): "
        f"{_fmt(entry.kcal)} kcal"
    )


def format_estimate(result: EstimateResult, log: DailyLog) -> str:
    lines = ["🍽️ Estimativa da refeição:"]
    lines.extend(_format_entry(e) for e in result.entries)
    lines.append(f"Total da refeição: {_fmt(result.total)} kcal")
    lines.append(f"Total de hoje: {_fmt(log.total_kcal)} kcal")
    lines.append("_Valores aproximados._")
    return "\n".join(lines)


def format_summary(log: DailyLog) -> str:
    if not log.entries:
        return EMPTY_LOG_REPLY
    lines = [f"📊 Resumo de hoje ({log.date}):"]
    lines.extend(_format_entry(e) for e in log.entries)
    lines.append(f"Total: {_fmt(log.total_kcal)} kcal")
    return "\n".join(lines)


class MessageHandler:
    """Builds the reply for a message and hands it to the dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        estimator: CalorieEstimator,
        journal: MealJournal,
        history: ConversationHistory,
        llm: LLMClient | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._estimator = estimator
        self._journal = journal
        self._history = history
        self._llm = llm
        self._audit = audit_logger

    async def handle(self, message: IncomingMessage) -> DispatchResult:
        body = await self.build_reply(message)
        reply = OutboundReply(recipient_id=message.sender_id, body=body)
        return await self._dispatcher.send_reply(reply)

    async def build_reply(self, message: IncomingMessage) -> str:
        if message.kind == MessageKind.IMAGE:
            return IMAGE_REPLY
        if message.kind != MessageKind.TEXT or not message.text:
            return UNSUPPORTED_REPLY

        text = message.text
        sender_id = message.sender_id

        if is_summary_request(text):
            return format_summary(self._journal.today_log(sender_id))
        if is_reset_request(text):
            self._journal.reset(sender_id)
            return RESET_REPLY

        canned = quick_intent(text)
        if canned is not None:
            return canned

        result = self._estimator.estimate(text)
        if result.entries:
            log = self._journal.record(sender_id, result.entries)
            return format_estimate(result, log)
        if looks_like_meal(text):
            return MEAL_MISS_REPLY

        return await self._ask_llm(sender_id, text)

    async def _ask_llm(self, sender_id: str, text: str) -> str:
        if self._llm is None:
            return (
                f'Você disse: "{text}". (Modo simples ativo, configure a '
                "OPENAI_API_KEY para respostas inteligentes)"
            )

        messages = build_messages(SYSTEM_PROMPT, self._history.get(sender_id), text)
        result = await self._llm.complete(messages)
        if not result.ok:
            logger.warning("LLM reply for %s failed: %s", sender_id, result.error)
            if self._audit:
                self._audit.log(AuditEvent(
                    event_type=AuditEventType.LLM_FAILURE,
                    action="chat_completion",
                    result="failure",
                    sender_id=sender_id,
                    details={"error": result.error},
                ))
            return LLM_FALLBACK_REPLY

        self._history.append(sender_id, "user", text)
        self._history.append(sender_id, "assistant", result.text)
        return result.text

"""Canned replies and command detection answered without the LLM."""

from __future__ import annotations

import re

from src.estimator.estimator import normalize_text

_QUICK_INTENTS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"^menu$|\bopcoes\b"),
        "📋 Opções:\n1️⃣ Agendar consulta\n2️⃣ Planos e valores\n"
        "3️⃣ Orientações de dieta\n4️⃣ Falar com atendente",
    ),
    (
        re.compile(r"\b(agendar|agenda|marcar)\b"),
        "🕐 Para agendar, envie: *nome completo + melhor horário*.",
    ),
    (
        re.compile(r"\b(preco|precos|valor|valores|custos?|planos?)\b"),
        "💰 Trabalho com planos mensais e trimestrais. "
        "Me conte seu objetivo que te indico o ideal.",
    ),
    (
        re.compile(r"\b(dieta|cardapio|alimentacao)\b"),
        "🥦 Posso te ajudar! Me diga sua rotina (horários) e objetivo "
        "(peso, % de gordura).",
    ),
    (
        re.compile(r"\b(tirzepatida|mounjaro|zepa)\b"),
        "💉 A Tirzepatida é usada para controle de peso e glicemia. "
        "Posso explicar como ela age e os efeitos esperados.",
    ),
]

_SUMMARY = re.compile(r"^(resumo|total|quanto comi( hoje)?|meu dia)\??$")
_RESET = re.compile(r"^(zerar|zera|reiniciar dia|limpar dia)$")


def quick_intent(text: str) -> str | None:
    """Return a canned reply for menu-style keywords, or None."""
    normalized = normalize_text(text)
    for pattern, reply in _QUICK_INTENTS:
        if pattern.search(normalized):
            return reply
    return None


def is_summary_request(text: str) -> bool:
    return _SUMMARY.match(normalize_text(text)) is not None


def is_reset_request(text: str) -> bool:
    return _RESET.match(normalize_text(text)) is not None

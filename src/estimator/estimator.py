"""Table-driven calorie estimator for free-text meal descriptions.

Estimates are approximate by nature; the only guarantee is that the same
table and the same text always produce the same result.
"""

from __future__ import annotations

import json
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from src.models import EstimateResult, FoodEntry, FoodSpec, FoodUnit

_NUMBER_WORDS: dict[str, float] = {
    "um": 1,
    "uma": 1,
    "dois": 2,
    "duas": 2,
    "tres": 3,
    "quatro": 4,
    "cinco": 5,
    "seis": 6,
    "sete": 7,
    "oito": 8,
    "nove": 9,
    "dez": 10,
    "meio": 0.5,
    "meia": 0.5,
}

# unit token -> (dimension, multiplier to grams / ml / pieces)
_MEASURES: dict[str, tuple[FoodUnit, float]] = {
    "g": (FoodUnit.GRAM, 1),
    "gr": (FoodUnit.GRAM, 1),
    "grama": (FoodUnit.GRAM, 1),
    "gramas": (FoodUnit.GRAM, 1),
    "kg": (FoodUnit.GRAM, 1000),
    "ml": (FoodUnit.MILLILITER, 1),
    "l": (FoodUnit.MILLILITER, 1000),
    "litro": (FoodUnit.MILLILITER, 1000),
    "litros": (FoodUnit.MILLILITER, 1000),
    "un": (FoodUnit.UNIT, 1),
    "und": (FoodUnit.UNIT, 1),
    "unidade": (FoodUnit.UNIT, 1),
    "unidades": (FoodUnit.UNIT, 1),
    "fatia": (FoodUnit.UNIT, 1),
    "fatias": (FoodUnit.UNIT, 1),
}

_QTY = (
    r"(?P<qty>\d+(?:[.,]\d+)?|"
    + "|".join(sorted(_NUMBER_WORDS, key=len, reverse=True))
    + r")"
)
_UNIT = "(?P<unit>" + "|".join(sorted(_MEASURES, key=len, reverse=True)) + ")"
_PREFIX = rf"(?:{_QTY}\s*(?:{_UNIT}\b)?\s+(?:de\s+)?)?"

_MEAL_HINT = re.compile(
    r"\b(comi|comendo|almocei|almoco|jantei|jantar|janta|lanchei|lanche|"
    r"cafe da manha|bebi|tomei|refeicao|ceia)\b"
)


class FoodTableError(ValueError):
    """Raised when the food table file is malformed."""


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.split())


def looks_like_meal(text: str) -> bool:
    """Return True if the text reads like someone reporting what they ate."""
    return _MEAL_HINT.search(normalize_text(text)) is not None


def load_food_table(table_path: str | Path) -> list[FoodSpec]:
    path = Path(table_path)
    if not path.exists():
        raise FileNotFoundError(f"Food table not found: {table_path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        foods = [FoodSpec.model_validate(row) for row in raw]
    except (json.JSONDecodeError, TypeError, ValidationError) as exc:
        raise FoodTableError(f"Invalid food table {table_path}: {exc}") from exc

    seen: set[str] = set()
    for food in foods:
        if food.key in seen:
            raise FoodTableError(f"Duplicate food key in {table_path}: {food.key}")
        seen.add(food.key)
    return foods


@dataclass(frozen=True)
class _Match:
    start: int
    end: int
    food: FoodSpec
    qty: float | None
    measure: tuple[FoodUnit, float] | None


class CalorieEstimator:
    """Matches known foods in free text and sums their calories.

    Every alias match is collected first. Spans are then claimed longest
    match first, ties broken by table order, so "pao frances" beats "pao"
    however the aliases are written. Each food key is counted once, at
    its first mention.
    """

    def __init__(self, foods: list[FoodSpec]) -> None:
        self._foods = list(foods)
        self._compiled: list[tuple[FoodSpec, re.Pattern[str]]] = []
        for food in self._foods:
            for alias in food.aliases:
                try:
                    pattern = re.compile(rf"\b{_PREFIX}(?P<food>{alias})\b")
                except re.error as exc:
                    raise FoodTableError(
                        f"Bad alias {alias!r} for food {food.key}: {exc}"
                    ) from exc
                self._compiled.append((food, pattern))

    @classmethod
    def from_file(cls, table_path: str | Path) -> CalorieEstimator:
        return cls(load_food_table(table_path))

    @property
    def foods(self) -> list[FoodSpec]:
        return list(self._foods)

    def _candidates(self, normalized: str) -> list[_Match]:
        found: list[tuple[int, int, _Match]] = []
        for order, (food, pattern) in enumerate(self._compiled):
            for m in pattern.finditer(normalized):
                start, end = m.span("food")
                found.append((end - start, order, _Match(
                    start=start,
                    end=end,
                    food=food,
                    qty=_parse_qty(m.group("qty")),
                    measure=_MEASURES.get(m.group("unit") or ""),
                )))
        found.sort(key=lambda item: (-item[0], item[1], item[2].start))
        return [match for _, _, match in found]

    def estimate(self, text: str) -> EstimateResult:
        normalized = normalize_text(text)
        claimed: list[_Match] = []
        for cand in self._candidates(normalized):
            if any(cand.start < c.end and c.start < cand.end for c in claimed):
                continue
            claimed.append(cand)

        entries: list[FoodEntry] = []
        seen_keys: set[str] = set()
        for match in sorted(claimed, key=lambda x: x.start):
            if match.food.key in seen_keys:
                continue
            seen_keys.add(match.food.key)
            entry = _to_entry(match)
            if entry is not None:
                entries.append(entry)

        total = round(sum(e.kcal for e in entries), 1)
        return EstimateResult(entries=entries, total=total)


def _parse_qty(raw: str | None) -> float | None:
    if raw is None:
        return None
    if raw in _NUMBER_WORDS:
        return _NUMBER_WORDS[raw]
    return float(raw.replace(",", "."))


def _to_entry(match: _Match) -> FoodEntry | None:
    food = match.food
    qty = match.qty
    measure = match.measure

    if qty is None:
        return _default_entry(food)
    if qty <= 0:
        return None

    dimension, factor = measure if measure else (FoodUnit.UNIT, 1.0)

    if food.basis == FoodUnit.UNIT:
        if dimension == FoodUnit.UNIT:
            return _entry(food, qty, FoodUnit.UNIT, food.kcal * qty)
        if food.unit_weight:
            amount = qty * factor
            return _entry(food, amount, dimension, food.kcal * amount / food.unit_weight)
        return _default_entry(food)

    # Weight or volume based food
    if dimension == food.basis:
        amount = qty * factor
        return _entry(food, amount, food.basis, food.kcal * amount / 100)
    if dimension == FoodUnit.UNIT:
        amount = qty * (food.unit_weight or food.default_quantity)
        return _entry(food, amount, food.basis, food.kcal * amount / 100)
    return _default_entry(food)


def _default_entry(food: FoodSpec) -> FoodEntry:
    if food.basis == FoodUnit.UNIT:
        kcal = food.kcal * food.default_quantity
    else:
        kcal = food.kcal * food.default_quantity / 100
    return _entry(food, food.default_quantity, food.basis, kcal)


def _entry(food: FoodSpec, quantity: float, unit: FoodUnit, kcal: float) -> FoodEntry:
    return FoodEntry(
        label=food.label,
        quantity=round(quantity, 2),
        unit=unit,
        kcal=round(kcal, 1),
    )

"""
campusgrid/services/field_validator.py — Валидация полей формы онбординга.

Набор чистых предикатов: одно поле × одно правило → вердикт.
Без побочных эффектов; одинаковые (value, rule) всегда дают одинаковый
результат.

Виды правил:
    • Required              — значение не пустое
    • Regex(pattern)        — полное совпадение с шаблоном
    • NumericRange(lo, hi)  — число в диапазоне (включительно)
    • OneOf(options)        — значение (или каждый элемент набора) из справочника
    • MaxLength(n)          — длина не больше n

Все правила, кроме Required, пропускают пустое значение: необязательное
поле можно оставить пустым.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union


# ═══════════════════════════════════════════════════════════════════════════
# Правила
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Required:
    message: str | None = None


@dataclass(frozen=True)
class Regex:
    pattern: str
    message: str | None = None
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern))

    def fullmatch(self, text: str) -> bool:
        return self._compiled.fullmatch(text) is not None


@dataclass(frozen=True)
class NumericRange:
    min: float | None = None
    max: float | None = None
    message: str | None = None


@dataclass(frozen=True)
class OneOf:
    options: frozenset[str]
    message: str | None = None

    def __init__(self, options: Iterable[str], message: str | None = None):
        object.__setattr__(self, "options", frozenset(options))
        object.__setattr__(self, "message", message)


@dataclass(frozen=True)
class MaxLength:
    n: int
    message: str | None = None


Rule = Union[Required, Regex, NumericRange, OneOf, MaxLength]


@dataclass(frozen=True)
class FieldVerdict:
    """Результат проверки одного поля одним правилом."""

    valid: bool
    message: str | None = None


_OK = FieldVerdict(valid=True)


# ═══════════════════════════════════════════════════════════════════════════
# Проверка
# ═══════════════════════════════════════════════════════════════════════════


def is_empty(value: Any) -> bool:
    """None, пустая/пробельная строка или пустая коллекция."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (set, frozenset, list, tuple, dict)):
        return len(value) == 0
    return False


def humanize(field_name: str) -> str:
    """``contact_email`` → ``Contact email``."""
    text = re.sub(r"(?<!^)(?=[A-Z])", " ", field_name).replace("_", " ").strip()
    return text[:1].upper() + text[1:].lower()


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def validate(field_name: str, value: Any, rule: Rule, label: str | None = None) -> FieldVerdict:
    """Проверяет одно поле одним правилом."""
    label = label or humanize(field_name)

    if isinstance(rule, Required):
        if is_empty(value):
            return FieldVerdict(False, rule.message or f"{label} is required")
        return _OK

    # Остальные правила не применяются к пустому значению
    if is_empty(value):
        return _OK

    if isinstance(rule, Regex):
        if isinstance(value, (set, frozenset, list, tuple)):
            ok = all(rule.fullmatch(str(v)) for v in value)
        else:
            ok = rule.fullmatch(str(value).strip())
        return _OK if ok else FieldVerdict(False, rule.message or f"{label} has an invalid format")

    if isinstance(rule, NumericRange):
        number = _to_number(value)
        if number is None:
            return FieldVerdict(False, rule.message or f"{label} must be a number")
        if (rule.min is not None and number < rule.min) or (rule.max is not None and number > rule.max):
            return FieldVerdict(False, rule.message or f"{label} must be between {_fmt(rule.min)} and {_fmt(rule.max)}")
        return _OK

    if isinstance(rule, OneOf):
        members = value if isinstance(value, (set, frozenset, list, tuple)) else [value]
        unknown = [str(m) for m in members if str(m) not in rule.options]
        if unknown:
            return FieldVerdict(False, rule.message or f"{label} has an unsupported value: {', '.join(sorted(unknown))}")
        return _OK

    if isinstance(rule, MaxLength):
        size = len(value) if isinstance(value, (set, frozenset, list, tuple)) else len(str(value))
        if size > rule.n:
            return FieldVerdict(False, rule.message or f"{label} must be at most {rule.n} characters")
        return _OK

    raise TypeError(f"Unknown validation rule: {rule!r}")


def _fmt(bound: float | None) -> str:
    if bound is None:
        return "any"
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def validate_field(
    field_name: str, value: Any, rules: Sequence[Rule], label: str | None = None,
) -> FieldVerdict:
    """Первый провалившийся вердикт по списку правил (или успех)."""
    for rule in rules:
        verdict = validate(field_name, value, rule, label)
        if not verdict.valid:
            return verdict
    return _OK


def validate_fields(
    values: Mapping[str, Any],
    schema: Mapping[str, Sequence[Rule]],
    labels: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Проверяет набор полей по схеме.

    Returns:
        ``{field: message}`` для каждого невалидного поля; пустой dict —
        все поля валидны.
    """
    labels = labels or {}
    errors: dict[str, str] = {}
    for name, rules in schema.items():
        verdict = validate_field(name, values.get(name), rules, labels.get(name))
        if not verdict.valid:
            errors[name] = verdict.message or "Invalid value"
    return errors


__all__ = [
    "Required",
    "Regex",
    "NumericRange",
    "OneOf",
    "MaxLength",
    "Rule",
    "FieldVerdict",
    "is_empty",
    "validate",
    "validate_field",
    "validate_fields",
]

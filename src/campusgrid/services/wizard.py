"""
campusgrid/services/wizard.py — Мастер онбординга школьной группы.

Упорядоченная последовательность шагов над одним изменяемым черновиком:

    1. Organization       — реквизиты организации, тариф, советы
    2. Contact & Address  — контактное лицо и адрес
    3. Compliance         — PAN / GST / банковские реквизиты
    4. Review             — только просмотр; отсюда запускается отправка

Инварианты:
    • ``advance()`` проходит только если все поля текущего шага валидны;
      иначе индекс не меняется.
    • ``retreat()`` всегда разрешён со шага > 1, ничего не проверяет и не
      меняет черновик.
    • Черновик выбрасывается только после успешной отправки или ``cancel()``.
    • Производные значения (subdomain, domain_name) вычисляются один раз при
      отправке, на копии черновика, и только для пустых полей.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from pydantic.alias_generators import to_camel

from campusgrid.config import CampusGridSettings, get_settings
from campusgrid.exceptions import ValidationError
from campusgrid.models.enums import Board, OrganizationType, PaymentMode, PlanType, values
from campusgrid.models.group import GroupDraft, OnboardingOutcome
from campusgrid.services.field_validator import (
    MaxLength,
    NumericRange,
    OneOf,
    Regex,
    Required,
    Rule,
    validate_fields,
)

if TYPE_CHECKING:
    from campusgrid.services.onboarding_service import OnboardingSubmitter

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Шаблоны полей
# ═══════════════════════════════════════════════════════════════════════════

EMAIL_PATTERN = r"[^@\s]+@[^@\s]+\.[^@\s]+"
PHONE_PATTERN = r"[0-9]{10}"
PINCODE_PATTERN = r"[0-9]{6}"
PAN_PATTERN = r"[A-Z]{5}[0-9]{4}[A-Z]"
GST_PATTERN = r"[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]"
IFSC_PATTERN = r"[A-Z]{4}0[A-Z0-9]{6}"
ACCOUNT_NUMBER_PATTERN = r"[0-9]{9,18}"
SUBDOMAIN_PATTERN = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
DOMAIN_PATTERN = r"(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}"

SUBDOMAIN_MAX_DERIVED = 20

FIELD_LABELS: dict[str, str] = {
    "group_name": "Group name",
    "display_name": "Display name",
    "subdomain": "Subdomain",
    "organization_type": "Organization type",
    "established_year": "Established year",
    "registration_number": "Registration number",
    "affiliated_boards": "Affiliated boards",
    "domain_name": "Domain name",
    "plan_type": "Plan type",
    "no_of_schools": "Number of schools",
    "contact_person": "Contact person",
    "contact_email": "Contact email",
    "contact_phone": "Contact phone",
    "alt_phone": "Alternate phone",
    "address_line1": "Address line 1",
    "address_line2": "Address line 2",
    "city": "City",
    "state": "State",
    "pincode": "Pincode",
    "country": "Country",
    "timezone": "Timezone",
    "preferred_language": "Preferred language",
    "pan_number": "PAN",
    "gst_number": "GST number",
    "bank_name": "Bank name",
    "account_holder_name": "Account holder name",
    "account_number": "Account number",
    "ifsc_code": "IFSC code",
    "billing_email": "Billing email",
    "payment_mode": "Payment mode",
    "remarks": "Remarks",
}

# Нормализация ввода, как в форме консоли
_UPPERCASE_FIELDS = {"pan_number", "gst_number", "ifsc_code"}
_LOWERCASE_FIELDS = {"subdomain", "domain_name"}
_DIGITS_ONLY_FIELDS = {"pincode"}
_INTEGER_FIELDS = {"established_year", "no_of_schools"}


# ═══════════════════════════════════════════════════════════════════════════
# Шаги
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class WizardStep:
    """Шаг мастера: номер, заголовок и схема правил его полей."""

    index: int
    key: str
    title: str
    schema: Mapping[str, Sequence[Rule]] = field(default_factory=dict)

    @property
    def fields(self) -> list[str]:
        return list(self.schema)

    def validate(self, draft: GroupDraft) -> dict[str, str]:
        values_ = {name: getattr(draft, name) for name in self.schema}
        return validate_fields(values_, self.schema, FIELD_LABELS)


def build_steps(settings: CampusGridSettings | None = None, year: int | None = None) -> tuple[WizardStep, ...]:
    """Собирает шаги мастера с учётом настроек политики валидации."""
    settings = settings or get_settings()
    year = year or datetime.now().year

    boards_rules: list[Rule] = [OneOf(values(Board))]
    if settings.require_affiliated_board:
        boards_rules.insert(0, Required("Select at least one affiliated board"))

    organization = WizardStep(1, "organization", "Organization", {
        "group_name": [Required(), MaxLength(120)],
        "display_name": [Required(), MaxLength(120)],
        "organization_type": [Required(), OneOf(values(OrganizationType))],
        "established_year": [Required(), NumericRange(1900, year)],
        "subdomain": [
            Regex(SUBDOMAIN_PATTERN, "Subdomain may contain only lowercase letters, digits and hyphens"),
            MaxLength(63),
        ],
        "domain_name": [Regex(DOMAIN_PATTERN, "Domain name is not a valid host name"), MaxLength(253)],
        "plan_type": [Required(), OneOf(values(PlanType))],
        "affiliated_boards": boards_rules,
        "registration_number": [Required(), MaxLength(64)],
        "no_of_schools": [NumericRange(1, 10000)],
    })
    contact = WizardStep(2, "contact", "Contact & Address", {
        "contact_person": [Required(), MaxLength(120)],
        "contact_phone": [Required(), Regex(PHONE_PATTERN, "Contact phone must be a 10-digit number")],
        "contact_email": [Required(), Regex(EMAIL_PATTERN, "Contact email is not a valid email address")],
        "alt_phone": [Regex(PHONE_PATTERN, "Alternate phone must be a 10-digit number")],
        "address_line1": [Required(), MaxLength(200)],
        "address_line2": [MaxLength(200)],
        "city": [Required(), MaxLength(80)],
        "state": [Required(), MaxLength(80)],
        "pincode": [Required(), Regex(PINCODE_PATTERN, "Pincode must be a 6-digit number")],
        "country": [Required(), MaxLength(80)],
        "timezone": [MaxLength(64)],
        "preferred_language": [MaxLength(40)],
    })
    compliance = WizardStep(3, "compliance", "Compliance", {
        "pan_number": [Required(), Regex(PAN_PATTERN, "PAN must look like AACCP1234K")],
        "gst_number": [Required(), Regex(GST_PATTERN, "GST number must look like 27AACCP1234K1Z5")],
        "bank_name": [Required(), MaxLength(120)],
        "account_holder_name": [Required(), MaxLength(120)],
        "account_number": [Required(), Regex(ACCOUNT_NUMBER_PATTERN, "Account number must be 9 to 18 digits")],
        "ifsc_code": [Required(), Regex(IFSC_PATTERN, "IFSC code must look like HDFC0001234")],
        "billing_email": [Required(), Regex(EMAIL_PATTERN, "Billing email is not a valid email address")],
        "payment_mode": [Required(), OneOf(values(PaymentMode))],
        "remarks": [MaxLength(1000)],
    })
    review = WizardStep(4, "review", "Review")
    return (organization, contact, compliance, review)


def derive_subdomain(group_name: str) -> str:
    """``"Lincoln Group"`` → ``"lincolngroup"`` (a-z0-9, не длиннее 20)."""
    return re.sub(r"[^a-z0-9]", "", (group_name or "").lower())[:SUBDOMAIN_MAX_DERIVED]


# ═══════════════════════════════════════════════════════════════════════════
# Состояние мастера
# ═══════════════════════════════════════════════════════════════════════════


class WizardState:
    """Черновик + текущий шаг. Единственный владелец GroupDraft."""

    def __init__(
        self,
        settings: CampusGridSettings | None = None,
        draft: GroupDraft | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.steps = build_steps(self.settings)
        self._draft = draft if draft is not None else GroupDraft()
        self._index = 1
        self._errors: dict[str, str] = {}
        self._revision = 0
        self._submission_key: str | None = None
        self._aliases = {to_camel(name): name for name in GroupDraft.model_fields}

    def __repr__(self) -> str:
        return f"<WizardState step={self._index}/{len(self.steps)} revision={self._revision}>"

    # ── Свойства ─────────────────────────────────────────────────────────

    @property
    def draft(self) -> GroupDraft:
        return self._draft

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_step(self) -> WizardStep:
        return self.steps[self._index - 1]

    @property
    def is_review(self) -> bool:
        return self._index == len(self.steps)

    @property
    def errors(self) -> dict[str, str]:
        """Ошибки последней неудачной попытки ``advance()``."""
        return dict(self._errors)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def submission_key(self) -> str:
        """Idempotency-ключ: один на ревизию черновика."""
        if self._submission_key is None:
            self._submission_key = uuid.uuid4().hex
        return self._submission_key

    # ── Редактирование ───────────────────────────────────────────────────

    def resolve_field(self, name: str) -> str:
        """Имя поля (snake_case или camelCase) → имя атрибута черновика."""
        if name in GroupDraft.model_fields:
            return name
        if name in self._aliases:
            return self._aliases[name]
        raise ValidationError(f"Unknown field: {name}", field_errors={name: "Unknown field"})

    def set_field(self, name: str, value: Any) -> None:
        """Меняет поле черновика. Валидация — только при следующем ``advance()``."""
        attr = self.resolve_field(name)
        setattr(self._draft, attr, _normalize(attr, value))
        self._touch()

    def update(self, values_: Mapping[str, Any]) -> None:
        for name, value in values_.items():
            self.set_field(name, value)

    def toggle_board(self, board: Board | str) -> bool:
        """Добавляет или убирает совет. Returns: True, если совет теперь выбран."""
        board = board.value if isinstance(board, Board) else str(board).strip()
        boards = set(self._draft.affiliated_boards)
        if board in boards:
            boards.discard(board)
        else:
            boards.add(board)
        self._draft.affiliated_boards = boards
        self._touch()
        return board in boards

    def _touch(self) -> None:
        self._revision += 1
        self._submission_key = None

    # ── Навигация ────────────────────────────────────────────────────────

    def validate_step(self, index: int | None = None) -> dict[str, str]:
        """Проверка шага без побочных эффектов."""
        step = self.steps[(index or self._index) - 1]
        return step.validate(self._draft)

    def advance(self) -> bool:
        """
        Переход на следующий шаг.

        Returns:
            True — шаг пройден; False — есть ошибки (см. ``errors``) или
            текущий шаг Review (он запускает отправку, а не переход).
        """
        if self.is_review:
            return False
        errors = self.validate_step()
        self._errors = errors
        if errors:
            logger.debug("Step %s blocked by %d invalid field(s)", self.current_step.key, len(errors))
            return False
        self._index += 1
        return True

    def retreat(self) -> bool:
        """Шаг назад; никогда не проверяет поля и не трогает черновик."""
        if self._index <= 1:
            return False
        self._index -= 1
        self._errors = {}
        return True

    def cancel(self) -> None:
        """Явная отмена: черновик выбрасывается, мастер возвращается на шаг 1."""
        self._reset()
        logger.info("Onboarding draft discarded")

    def _reset(self) -> None:
        self._draft = GroupDraft()
        self._index = 1
        self._errors = {}
        self._revision = 0
        self._submission_key = None

    # ── Отправка ─────────────────────────────────────────────────────────

    def build_request(self) -> GroupDraft:
        """
        Готовит черновик к отправке: копия + производные значения.

        Исходный черновик не меняется, чтобы после ошибки оператор мог
        исправить данные и отправить снова.
        """
        if self.settings.revalidate_before_submit:
            errors: dict[str, str] = {}
            for step in self.steps:
                errors.update(step.validate(self._draft))
            if errors:
                self._errors = errors
                raise ValidationError("Some fields are no longer valid", field_errors=errors)

        prepared = self._draft.model_copy(deep=True)
        if not prepared.subdomain:
            prepared.subdomain = derive_subdomain(prepared.group_name)
            if not prepared.subdomain:
                raise ValidationError(
                    "Subdomain could not be derived from the group name",
                    field_errors={"subdomain": "Enter a subdomain"},
                )
        if not prepared.domain_name:
            prepared.domain_name = f"{prepared.subdomain}.{self.settings.platform_domain}"
        return prepared

    async def submit(self, submitter: "OnboardingSubmitter") -> OnboardingOutcome:
        """
        Отправка с шага Review.

        Успех выбрасывает черновик; любая ошибка оставляет его как есть.
        """
        if not self.is_review:
            raise ValidationError("Complete every step before submitting")
        prepared = self.build_request()
        key = self.submission_key if self.settings.send_idempotency_key else None
        outcome = await submitter.submit(prepared, idempotency_key=key)
        self._reset()
        return outcome


def _normalize(attr: str, value: Any) -> Any:
    """Нормализация ввода: регистр, цифры, целые числа."""
    if attr == "affiliated_boards":
        if value is None:
            return set()
        if isinstance(value, str):
            return {b.strip() for b in value.split(",") if b.strip()}
        return {str(b).strip() for b in value if str(b).strip()}

    if attr in _INTEGER_FIELDS:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        text = str(value).strip()
        # Нечисловой ввод сохраняется как есть, его отклонит NumericRange
        return int(text) if text.isdigit() else text

    if value is None:
        return ""
    text = str(value).strip()
    if attr in _UPPERCASE_FIELDS:
        return text.upper()
    if attr in _LOWERCASE_FIELDS:
        return text.lower()
    if attr in _DIGITS_ONLY_FIELDS:
        return re.sub(r"\D", "", text)
    return text


def steps_summary(wizard: WizardState) -> Iterable[tuple[WizardStep, dict[str, Any]]]:
    """Пары (шаг, значения полей) для экрана Review."""
    draft = wizard.draft
    for step in wizard.steps:
        if step.schema:
            yield step, {name: getattr(draft, name) for name in step.schema}


__all__ = [
    "WizardStep",
    "WizardState",
    "FIELD_LABELS",
    "build_steps",
    "derive_subdomain",
    "steps_summary",
]

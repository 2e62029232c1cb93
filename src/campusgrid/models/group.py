"""
campusgrid/models/group.py — Доменные модели школьной группы.

    • GroupDraft      — изменяемый черновик, которым владеет мастер онбординга
    • Group           — read-реплика группы, созданной на сервере
    • AdminCredential — одноразово раскрываемые учётные данные администратора
    • OnboardingReceipt / OnboardingOutcome — ответ на создание группы
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, SecretStr, field_serializer, field_validator

from campusgrid.models.common import CampusGridBase
from campusgrid.models.enums import (
    Board,
    GroupStatus,
    OrganizationType,
    PaymentMode,
    PlanType,
)

_BOARD_ORDER = {b.value: i for i, b in enumerate(Board)}


def _current_year() -> int:
    return datetime.now().year


class GroupProfile(CampusGridBase):
    """
    Общие поля группы: организация, контакты, адрес, финансы.

    Типы намеренно мягкие: черновик может содержать невалидные значения,
    пока оператор заполняет форму. Валидность решает FieldValidator.
    """

    # ── Организация ──
    group_name: str = ""
    display_name: str = ""
    subdomain: str = ""
    organization_type: str = ""
    established_year: int | str | None = None
    registration_number: str = ""
    affiliated_boards: set[str] = Field(default_factory=set)
    domain_name: str = ""
    plan_type: str = ""
    payment_mode: str = ""
    no_of_schools: int | str | None = None

    # ── Контакты ──
    contact_person: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    alt_phone: str = ""

    # ── Адрес ──
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = ""
    timezone: str = ""
    preferred_language: str = ""

    # ── Финансы / compliance ──
    pan_number: str = ""
    gst_number: str = ""
    bank_name: str = ""
    account_holder_name: str = ""
    account_number: str = ""
    ifsc_code: str = ""
    billing_email: str = ""

    remarks: str = ""

    @field_validator("affiliated_boards", mode="before")
    @classmethod
    def _boards_from_sequence(cls, v: Any) -> Any:
        if v is None:
            return set()
        if isinstance(v, str):
            return {v} if v else set()
        return v

    @field_serializer("affiliated_boards")
    def _boards_to_list(self, boards: set[str]) -> list[str]:
        """Сериализует набор советов в список в порядке справочника."""
        return sorted(boards, key=lambda b: (_BOARD_ORDER.get(b, len(_BOARD_ORDER)), b))


class GroupDraft(GroupProfile):
    """
    Черновик группы (владелец — WizardState).

    Значения по умолчанию повторяют форму онбординга консоли.
    """

    organization_type: str = OrganizationType.PRIVATE_LIMITED.value
    established_year: int | str | None = Field(default_factory=_current_year)
    affiliated_boards: set[str] = Field(default_factory=lambda: {Board.CBSE.value})
    plan_type: str = PlanType.STANDARD.value
    payment_mode: str = PaymentMode.ONLINE.value
    country: str = "India"
    timezone: str = "Asia/Kolkata"
    preferred_language: str = "English"

    @classmethod
    def field_names(cls) -> set[str]:
        return set(cls.model_fields)

    def to_request(self) -> dict:
        """Плоское JSON-тело для ``POST /api/groups``."""
        return self.to_wire()


class Group(GroupProfile):
    """Группа, созданная на сервере (read-реплика в клиенте)."""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    status: GroupStatus = GroupStatus.PENDING
    created_at: datetime | None = None
    db_name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    def matches_text(self, needle: str) -> bool:
        """Подстрока (без учёта регистра) в имени, контактном email или поддомене."""
        needle = needle.casefold()
        return any(
            needle in (value or "").casefold()
            for value in (self.group_name, self.contact_email, self.subdomain)
        )


class AdminCredential(CampusGridBase):
    """Учётные данные администратора группы. Пароль раскрывается один раз."""

    # Пароль хранится байт в байт, как его выдал сервер
    model_config = ConfigDict(str_strip_whitespace=False)

    email: str
    password: SecretStr
    name: str = ""


class OnboardingReceipt(CampusGridBase):
    """Тело ``data`` успешного ответа на ``POST /api/groups``."""

    model_config = ConfigDict(extra="allow")

    group_name: str
    subdomain: str
    db_name: str = ""
    status: GroupStatus
    admin: AdminCredential
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else v


@dataclass(frozen=True)
class OnboardingOutcome:
    """Результат успешного онбординга: новая группа + учётные данные."""

    group: Group
    admin: AdminCredential
    db_name: str = ""

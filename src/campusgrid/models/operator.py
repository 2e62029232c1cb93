"""
campusgrid/models/operator.py — Оператор платформы (администратор консоли).

Данные приходят из ``POST /api/auth/login`` и ``GET /api/auth/me``.
"""

from enum import Enum

from pydantic import AliasChoices, ConfigDict, Field, field_validator, model_validator

from campusgrid.models.common import CampusGridBase


class OperatorRole(str, Enum):
    """Роль оператора консоли."""
    VIEWER = "viewer"
    OPERATOR = "operator"
    SUPERADMIN = "superadmin"


# Роли, которые отдаёт платформа под другими именами
_ROLE_ALIASES = {
    "admin": OperatorRole.SUPERADMIN,
    "super_admin": OperatorRole.SUPERADMIN,
    "platform_admin": OperatorRole.SUPERADMIN,
}


class Operator(CampusGridBase):
    """Аутентифицированный оператор."""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    email: str
    name: str = ""
    # None — платформа прислала роль, которую консоль не знает
    role: OperatorRole | None = OperatorRole.OPERATOR
    platform_role: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _keep_platform_role(cls, data):
        if not isinstance(data, dict) or {"platform_role", "platformRole"} & data.keys():
            return data
        raw = data.get("role")
        if raw is not None:
            data = {**data, "platform_role": str(getattr(raw, "value", raw))}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, v):
        """Нераспознанная роль → None: права проверяет сервер."""
        if v is None or isinstance(v, OperatorRole):
            return v
        key = str(v).strip().lower()
        if key in _ROLE_ALIASES:
            return _ROLE_ALIASES[key]
        try:
            return OperatorRole(key)
        except ValueError:
            return None

    @property
    def role_name(self) -> str:
        """Имя роли для логов и токенов."""
        return self.role.value if self.role else (self.platform_role or "unknown")

"""
═══════════════════════════════════════════════════════════════════════════════
CampusGrid Sandbox — In-Memory хранилище (эмуляция платформы)
═══════════════════════════════════════════════════════════════════════════════

Всё состояние sandbox-сервера: операторы, группы, учётные данные
администраторов групп (только bcrypt-хеши), отозванные токены и ответы
по Idempotency-Key. Данные теряются при перезапуске.

Провижининг БД тенанта не эмулируется: ``dbName`` — только имя.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from campusgrid.config import CampusGridSettings
from campusgrid.exceptions import ConflictError, NotFoundError, ValidationError
from campusgrid.models.enums import GroupStatus
from campusgrid.models.group import GroupDraft
from campusgrid.models.operator import Operator
from campusgrid.sandbox.security import generate_admin_password, hash_password, verify_password
from campusgrid.services.wizard import build_steps, derive_subdomain

logger = logging.getLogger(__name__)

_now = lambda: datetime.now(timezone.utc)  # noqa: E731


class SandboxStore:
    """Состояние одного экземпляра sandbox-приложения."""

    def __init__(self, settings: CampusGridSettings) -> None:
        self.settings = settings
        self._operators: dict[str, dict] = {}
        self._groups: dict[str, dict] = {}
        self._admin_hashes: dict[str, str] = {}
        self._revoked: set[str] = set()
        self._idempotent: dict[tuple[str, str], dict] = {}
        self._steps = build_steps(settings)

    # ═══════════════════════════════════════════════════════════════════════
    # Операторы
    # ═══════════════════════════════════════════════════════════════════════

    def add_operator(self, email: str, password: str, name: str = "", role: str = "operator") -> Operator:
        email = email.strip().lower()
        operator = Operator(id=uuid4().hex, email=email, name=name, role=role)
        self._operators[email] = {"operator": operator, "password_hash": hash_password(password)}
        logger.info("Sandbox store: operator %s (%s) registered", email, operator.role_name)
        return operator

    def authenticate(self, email: str, password: str) -> Operator | None:
        record = self._operators.get((email or "").strip().lower())
        if record is None or not verify_password(password, record["password_hash"]):
            return None
        return record["operator"]

    def get_operator(self, email: str) -> Operator | None:
        record = self._operators.get(email.strip().lower())
        return record["operator"] if record else None

    def revoke(self, jti: str | None) -> None:
        if jti:
            self._revoked.add(jti)

    def is_revoked(self, jti: str | None) -> bool:
        return bool(jti) and jti in self._revoked

    # ═══════════════════════════════════════════════════════════════════════
    # Группы
    # ═══════════════════════════════════════════════════════════════════════

    def list_groups(self) -> list[dict]:
        return sorted(self._groups.values(), key=lambda g: g["createdAt"], reverse=True)

    def get_group(self, group_id: str) -> dict:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    def create_group(self, payload: dict, idempotency_key: str | None = None, operator: str = "") -> dict:
        """
        Создаёт группу в статусе Pending и выдаёт учётные данные администратора.

        Повтор с тем же Idempotency-Key от того же оператора возвращает
        ответ первого запроса, новая группа не создаётся.

        Returns:
            Тело ``data`` ответа: groupName, subdomain, dbName, status, admin.
        """
        cache_key = (operator, idempotency_key) if idempotency_key else None
        if cache_key and cache_key in self._idempotent:
            logger.info("Sandbox store: replaying onboarding response for key %s", idempotency_key)
            return self._idempotent[cache_key]

        try:
            draft = GroupDraft.model_validate(payload)
        except SchemaError as exc:
            fields = {".".join(str(p) for p in e["loc"]): e["msg"] for e in exc.errors(include_input=False)}
            raise ValidationError("Malformed group payload", field_errors=fields) from exc
        if not draft.subdomain:
            draft.subdomain = derive_subdomain(draft.group_name)
        if not draft.domain_name and draft.subdomain:
            draft.domain_name = f"{draft.subdomain}.{self.settings.platform_domain}"
        self._validate(draft)

        if any(g["subdomain"] == draft.subdomain for g in self._groups.values()):
            raise ConflictError(
                f"Subdomain '{draft.subdomain}' is already taken",
                details={"field": "subdomain"},
            )

        group_id = uuid4().hex
        db_name = "campusgrid_" + re.sub(r"[^a-z0-9]", "_", draft.subdomain)
        group = {
            **draft.to_wire(),
            "id": group_id,
            "status": GroupStatus.PENDING.value,
            "dbName": db_name,
            "createdAt": _now().isoformat(),
        }
        self._groups[group_id] = group

        admin_email = f"admin@{draft.subdomain}.{self.settings.platform_domain}"
        admin_password = generate_admin_password()
        self._admin_hashes[admin_email] = hash_password(admin_password)

        receipt = {
            "id": group_id,
            "groupName": draft.group_name,
            "subdomain": draft.subdomain,
            "dbName": db_name,
            "status": GroupStatus.PENDING.value,
            "createdAt": group["createdAt"],
            "admin": {
                "email": admin_email,
                "password": admin_password,
                "name": f"{draft.group_name} Admin",
            },
        }
        if cache_key:
            self._idempotent[cache_key] = receipt
        logger.info("Sandbox store: created group %s (subdomain=%s)", draft.group_name, draft.subdomain)
        return receipt

    def set_status(self, group_id: str, status: GroupStatus) -> dict:
        group = self.get_group(group_id)
        group["status"] = status.value
        group["updatedAt"] = _now().isoformat()
        logger.info("Sandbox store: group %s is now %s", group_id, status.value)
        return group

    def verify_admin(self, email: str, password: str) -> bool:
        """
        Проверяет выданный пароль администратора группы по bcrypt-хешу.

        HTTP-маршрута нет: вход администратора группы — часть консоли
        школы, которую sandbox не эмулирует. Метод служит тестам, чтобы
        сверить раскрытый один раз пароль с тем, что запомнил сервер.
        """
        hashed = self._admin_hashes.get(email)
        return hashed is not None and verify_password(password, hashed)

    def _validate(self, draft: GroupDraft) -> None:
        errors: dict[str, str] = {}
        for step in self._steps:
            errors.update(step.validate(draft))
        if errors:
            first = next(iter(errors.values()))
            raise ValidationError(
                f"Validation failed: {first}",
                field_errors={to_camel(k): v for k, v in errors.items()},
            )


def seed_store(settings: CampusGridSettings) -> SandboxStore:
    """Хранилище с оператором из настроек (SANDBOX_ADMIN_*)."""
    store = SandboxStore(settings)
    store.add_operator(
        settings.sandbox_admin_email,
        settings.sandbox_admin_password,
        name=settings.sandbox_admin_name,
        role=settings.sandbox_admin_role,
    )
    return store

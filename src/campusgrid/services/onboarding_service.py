"""
campusgrid/services/onboarding_service.py — Отправка онбординга группы.

OnboardingSubmitter сериализует готовый черновик в один запрос
``POST /api/groups`` и разбирает ответ:

    • успех   → новая Group (всегда Pending) + AdminCredential в CredentialVault
    • ошибка  → NetworkError / ApplicationError / AuthError; черновик не трогаем

Автоматических повторов нет. Пока запрос в полёте, повторный ``submit()``
отклоняется без сетевого вызова.
"""

from __future__ import annotations

import logging
import uuid

from pydantic import ValidationError as SchemaError

from campusgrid.adapters.platform_client import PlatformClient
from campusgrid.config import CampusGridSettings, get_settings
from campusgrid.exceptions import ApplicationError, SubmissionInProgressError
from campusgrid.models.enums import GroupStatus
from campusgrid.models.group import Group, GroupDraft, OnboardingOutcome, OnboardingReceipt
from campusgrid.services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


class OnboardingSubmitter:
    """Один пользовательский submit → ровно один запрос создания."""

    def __init__(
        self,
        client: PlatformClient,
        vault: CredentialVault | None = None,
        settings: CampusGridSettings | None = None,
    ) -> None:
        self.client = client
        self.vault = vault
        self.settings = settings or get_settings()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit(self, draft: GroupDraft, idempotency_key: str | None = None) -> OnboardingOutcome:
        """
        Создаёт группу по черновику.

        Предусловие: черновик прошёл валидацию всех шагов мастера.

        Returns:
            OnboardingOutcome с группой в статусе Pending и учётными данными.

        Raises:
            SubmissionInProgressError: предыдущий запрос ещё не завершён.
            NetworkError / ApplicationError / AuthError: ошибка удалённой стороны.
        """
        if self._in_flight:
            raise SubmissionInProgressError()

        if idempotency_key is None and self.settings.send_idempotency_key:
            idempotency_key = uuid.uuid4().hex

        generation = self.client.session.generation
        payload = draft.to_request()

        self._in_flight = True
        try:
            logger.info("Submitting onboarding for group '%s'", draft.group_name)
            data = await self.client.create_group(payload, idempotency_key=idempotency_key)
        finally:
            self._in_flight = False

        receipt = _parse_receipt(data)
        if receipt.status is not GroupStatus.PENDING:
            # Контракт сервера: новая группа всегда Pending
            raise ApplicationError(
                f"Unexpected status '{receipt.status.value}' for a newly created group"
            )

        group = Group.model_validate({
            **payload,
            "id": receipt.id,
            "groupName": receipt.group_name,
            "subdomain": receipt.subdomain,
            "status": receipt.status,
            "createdAt": receipt.created_at,
            "dbName": receipt.db_name,
        })

        if self.vault is not None:
            self.vault.store(receipt.admin, generation=generation)

        logger.info(
            "Group '%s' onboarded (subdomain=%s, db=%s, status=%s)",
            group.group_name, group.subdomain, receipt.db_name, group.status.value,
        )
        return OnboardingOutcome(group=group, admin=receipt.admin, db_name=receipt.db_name)


def _parse_receipt(data) -> OnboardingReceipt:
    try:
        return OnboardingReceipt.model_validate(data)
    except SchemaError as exc:
        logger.warning("Malformed onboarding response: %s", exc.errors(include_input=False))
        raise ApplicationError("Malformed onboarding response from the CampusGrid API") from exc


__all__ = ["OnboardingSubmitter"]

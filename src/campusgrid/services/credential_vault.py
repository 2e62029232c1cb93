"""
campusgrid/services/credential_vault.py — Одноразовое хранилище учётных данных.

Пароль администратора группы сервер возвращает ровно один раз — в ответе
на создание группы. Vault держит его только в памяти, в единственном слоте:

    • ``store(credential)`` — кладёт (заменяет) учётные данные
    • ``get()``             — идемпотентное чтение, None после ``clear()``
    • ``clear()``           — единственный путь, которым пароль покидает память

``disclosure()`` очищает слот при выходе из блока — это аналог ухода
оператора со страницы показа учётных данных. Закрытие сессии тоже
очищает vault.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from campusgrid.models.group import AdminCredential
from campusgrid.session import OperatorSession

logger = logging.getLogger(__name__)


class CredentialVault:
    """Единственный слот для AdminCredential. Никогда не пишет на диск."""

    def __init__(self, session: OperatorSession | None = None) -> None:
        self._credential: AdminCredential | None = None
        self._session = session
        if session is not None:
            session.on_teardown(self.clear)

    def __repr__(self) -> str:
        return f"<CredentialVault {'occupied' if self._credential else 'empty'}>"

    def store(self, credential: AdminCredential, generation: int | None = None) -> bool:
        """
        Кладёт учётные данные в слот.

        ``generation`` — поколение сессии, в котором был отправлен запрос.
        Ответ из закрытой или другой сессии отбрасывается.

        Returns:
            True, если учётные данные сохранены.
        """
        if (
            self._session is not None
            and generation is not None
            and not self._session.is_current(generation)
        ):
            logger.warning("Discarding admin credential from a stale operator session")
            return False
        if self._credential is not None:
            logger.info("Replacing undisclosed admin credential for %s", self._credential.email)
        self._credential = credential
        logger.info("Admin credential stored for %s", credential.email)
        return True

    def get(self) -> AdminCredential | None:
        return self._credential

    def clear(self) -> None:
        if self._credential is not None:
            logger.info("Admin credential for %s cleared", self._credential.email)
        self._credential = None

    @property
    def is_empty(self) -> bool:
        return self._credential is None

    @contextmanager
    def disclosure(self) -> Iterator[AdminCredential | None]:
        """
        Показ учётных данных: отдаёт содержимое слота и очищает его на выходе.

        Использование::

            with vault.disclosure() as admin:
                render(admin)
        """
        try:
            yield self._credential
        finally:
            self.clear()


__all__ = ["CredentialVault"]

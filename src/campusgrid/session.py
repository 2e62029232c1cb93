"""
═══════════════════════════════════════════════════════════════════════════════
CampusGrid Console — Сессия оператора (Operator Session Context)
═══════════════════════════════════════════════════════════════════════════════

Явный контекст сессии вместо глобального хранилища токена.
Передаётся в конструкторы PlatformClient / GroupRegistry / CredentialVault.

Жизненный цикл:
    • ``init(token, operator)``  — после успешного логина
    • ``teardown()``             — при логауте или AuthError (решает оболочка)

Каждый init/teardown увеличивает ``generation``. Асинхронный ответ,
запущенный в одном поколении, не применяется к состоянию другого.
"""

from __future__ import annotations

import inspect
import logging
import weakref
from typing import Callable

from campusgrid.exceptions import AuthError
from campusgrid.models.operator import Operator

logger = logging.getLogger(__name__)


class OperatorSession:
    """Bearer-токен и данные оператора одной логической сессии."""

    def __init__(self) -> None:
        self._token: str | None = None
        self._operator: Operator | None = None
        self._generation = 0
        self._teardown_hooks: list[Callable[[], Callable[[], None] | None]] = []

    def __repr__(self) -> str:
        state = "active" if self.is_active else "closed"
        return f"<OperatorSession {state} generation={self._generation}>"

    # ── Свойства ─────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._token is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def operator(self) -> Operator | None:
        return self._operator

    # ── Жизненный цикл ───────────────────────────────────────────────────

    def init(self, token: str, operator: Operator | None = None) -> None:
        """Открывает сессию. Повторный init сначала закрывает предыдущую."""
        if not token:
            raise ValueError("Session token must not be empty")
        if self.is_active:
            self.teardown()
        self._token = token
        self._operator = operator
        self._generation += 1
        logger.info(
            "Operator session started (generation=%d, operator=%s)",
            self._generation, operator.email if operator else "?",
        )

    def teardown(self) -> None:
        """Закрывает сессию и уведомляет подписчиков (vault, реестр)."""
        was_active = self.is_active
        self._token = None
        self._operator = None
        self._generation += 1
        for ref in list(self._teardown_hooks):
            hook = ref()
            if hook is None:
                self._teardown_hooks.remove(ref)
            else:
                hook()
        if was_active:
            logger.info("Operator session closed (generation=%d)", self._generation)

    def on_teardown(self, hook: Callable[[], None]) -> None:
        """
        Регистрирует callback, вызываемый при закрытии сессии.

        Bound-метод хранится по слабой ссылке: подписка не удерживает
        vault или реестр в памяти.
        """
        self._teardown_hooks = [ref for ref in self._teardown_hooks if ref() is not None]
        if inspect.ismethod(hook):
            ref = weakref.WeakMethod(hook)
        else:
            ref = lambda: hook  # noqa: E731
        self._teardown_hooks.append(ref)

    def off_teardown(self, hook: Callable[[], None]) -> None:
        """Снимает подписку, зарегистрированную через ``on_teardown``."""
        self._teardown_hooks = [ref for ref in self._teardown_hooks if ref() not in (None, hook)]

    @property
    def teardown_hook_count(self) -> int:
        return sum(1 for ref in self._teardown_hooks if ref() is not None)

    def set_operator(self, operator: Operator) -> None:
        self._operator = operator

    # ── HTTP ─────────────────────────────────────────────────────────────

    def auth_headers(self) -> dict[str, str]:
        """Заголовок ``Authorization: Bearer <token>``."""
        if self._token is None:
            raise AuthError("Not logged in")
        return {"Authorization": f"Bearer {self._token}"}

    def is_current(self, generation: int) -> bool:
        """True, если сессия активна и всё ещё в указанном поколении."""
        return self.is_active and self._generation == generation


__all__ = ["OperatorSession"]

"""
campusgrid/services/auth_service.py — Вход и выход оператора.

Связывает ``/api/auth/*`` с OperatorSession:
    • ``login()``  — POST /auth/login → ``session.init(token, operator)``
    • ``me()``     — GET /auth/me → обновляет данные оператора в сессии
    • ``logout()`` — POST /auth/logout → ``session.teardown()`` (всегда)
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as SchemaError

from campusgrid.adapters.platform_client import PlatformClient
from campusgrid.exceptions import ApplicationError, AuthError, CampusGridError
from campusgrid.models.operator import Operator

logger = logging.getLogger(__name__)


class AuthService:
    """Аутентификация оператора консоли."""

    def __init__(self, client: PlatformClient) -> None:
        self.client = client

    @property
    def session(self):
        return self.client.session

    async def login(self, email: str, password: str) -> Operator:
        """
        Email + пароль → активная сессия.

        Raises:
            AuthError: неверные учётные данные или ответ без токена.
        """
        data = await self.client.login(email.strip().lower(), password)
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("Login response did not include a token")

        operator = _to_operator(data.get("admin") or {"email": email})
        self.session.init(token, operator)
        logger.info("Operator %s logged in (role=%s)", operator.email, operator.role_name)
        return operator

    async def me(self) -> Operator:
        operator = _to_operator(await self.client.me())
        self.session.set_operator(operator)
        return operator

    async def logout(self) -> None:
        """Выход. Сессия закрывается даже если сервер не ответил."""
        try:
            if self.session.is_active:
                await self.client.logout()
        except CampusGridError as exc:
            logger.info("Remote logout failed, closing the session locally: %s", exc.message)
        finally:
            self.session.teardown()


def _to_operator(data) -> Operator:
    try:
        return Operator.model_validate(data)
    except SchemaError as exc:
        raise ApplicationError("Malformed operator data in API response") from exc


__all__ = ["AuthService"]

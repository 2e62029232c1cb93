"""
campusgrid/adapters/platform_client.py — HTTP-клиент REST API платформы.

Единственная точка выхода в сеть. Отвечает за:
    • прикрепление ``Authorization: Bearer <token>`` из OperatorSession
    • маппинг ответов на иерархию ошибок (AuthError / NotFoundError /
      ApplicationError / NetworkError)
    • распаковку конверта ``{success, data}``

Что делать при AuthError, клиент не решает: ошибка поднимается к
вызывающему коду, сессию закрывает оболочка.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from campusgrid.config import CampusGridSettings, get_settings
from campusgrid.exceptions import ApplicationError, AuthError, NetworkError, NotFoundError
from campusgrid.session import OperatorSession

logger = logging.getLogger(__name__)


class PlatformClient:
    """
    Асинхронный клиент ``/api/auth/*`` и ``/api/groups*``.

    Использование::

        async with PlatformClient(session) as client:
            groups = await client.list_groups()
    """

    def __init__(
        self,
        session: OperatorSession,
        settings: CampusGridSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url or self.settings.api_base_url,
            timeout=self.settings.request_timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ═══════════════════════════════════════════════════════════════════════
    # AUTH
    # ═══════════════════════════════════════════════════════════════════════

    async def login(self, email: str, password: str) -> dict:
        """``POST /auth/login`` → ``{token, admin}``."""
        return await self._request(
            "POST", "/auth/login", auth=False, json={"email": email, "password": password},
        )

    async def me(self) -> dict:
        return await self._request("GET", "/auth/me")

    async def logout(self) -> Any:
        return await self._request("POST", "/auth/logout")

    # ═══════════════════════════════════════════════════════════════════════
    # GROUPS
    # ═══════════════════════════════════════════════════════════════════════

    async def list_groups(self) -> list[dict]:
        data = await self._request("GET", "/groups")
        if not isinstance(data, list):
            raise ApplicationError("Malformed group list in API response")
        return data

    async def get_group(self, group_id: str) -> dict:
        return await self._request("GET", f"/groups/{group_id}", not_found=("Group", group_id))

    async def create_group(self, payload: dict, idempotency_key: str | None = None) -> dict:
        """``POST /groups`` — ровно один запрос, без повторов."""
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self._request("POST", "/groups", json=payload, headers=headers)

    async def update_group(self, group_id: str, changes: dict) -> dict:
        return await self._request(
            "PATCH", f"/groups/{group_id}", json=changes, not_found=("Group", group_id),
        )

    # ═══════════════════════════════════════════════════════════════════════
    # Внутреннее
    # ═══════════════════════════════════════════════════════════════════════

    async def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        json: Any = None,
        headers: dict[str, str] | None = None,
        not_found: tuple[str, str] | None = None,
    ) -> Any:
        request_headers: dict[str, str] = {}
        if auth:
            # Без токена запрос не уходит в сеть
            request_headers.update(self.session.auth_headers())
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.request(method, path, json=json, headers=request_headers)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, path, exc)
            raise NetworkError("The CampusGrid API did not respond in time. Please try again.") from exc
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError() from exc

        return self._handle_response(response, not_found)

    @staticmethod
    def _handle_response(response: httpx.Response, not_found: tuple[str, str] | None) -> Any:
        """Маппинг HTTP-ответа на данные или исключение."""
        try:
            body = response.json()
        except ValueError:
            body = None

        message = body.get("message") if isinstance(body, dict) else None
        status_code = response.status_code

        if status_code in (401, 403):
            logger.info("API rejected the session (%d)", status_code)
            raise AuthError(message or "Session is no longer valid", status_code=status_code)

        if status_code == 404 and not_found is not None:
            raise NotFoundError(not_found[0], not_found[1], message=message)

        if not response.is_success:
            logger.info("API request %s failed with %d: %s", response.request.url.path, status_code, message)
            raise ApplicationError(message or f"API request failed ({status_code})", status_code=status_code)

        if body is None:
            raise ApplicationError("Malformed response from the CampusGrid API", status_code=status_code)

        if isinstance(body, dict) and body.get("success") is False:
            raise ApplicationError(message or "API request failed", status_code=status_code)

        return _unwrap(body)


def _unwrap(body: Any) -> Any:
    """Снимает конверт ``{success, data}``; голое тело возвращается как есть."""
    if isinstance(body, dict) and "success" in body and "data" in body:
        return body["data"]
    return body


__all__ = ["PlatformClient"]

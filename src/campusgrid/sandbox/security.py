"""
campusgrid/sandbox/security.py — Пароли и JWT sandbox-сервера.

Sandbox эмулирует аутентификацию платформы:
    • пароли (операторов и администраторов групп) хранятся только как bcrypt-хеш
    • access-токен — подписанный JWT (HS256), claim ``sub`` = email оператора
    • logout отзывает токен по ``jti``
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import bcrypt
from fastapi import Header, Request
from jose import JWTError, jwt

from campusgrid.config import CampusGridSettings
from campusgrid.exceptions import AuthError
from campusgrid.models.operator import Operator

logger = logging.getLogger(__name__)

# Длина генерируемого пароля администратора группы (в байтах энтропии)
ADMIN_PASSWORD_BYTES = 12


# ═══════════════════════════════════════════════════════════════════════════
# РАБОТА С ПАРОЛЯМИ
# ═══════════════════════════════════════════════════════════════════════════


def hash_password(password: str) -> str:
    """Хеширует пароль с помощью bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Сравнивает открытый пароль с хешем."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def generate_admin_password() -> str:
    """Одноразовый пароль администратора новой группы."""
    return secrets.token_urlsafe(ADMIN_PASSWORD_BYTES)


# ═══════════════════════════════════════════════════════════════════════════
# JWT-ТОКЕНЫ
# ═══════════════════════════════════════════════════════════════════════════


def create_access_token(
    operator: Operator,
    settings: CampusGridSettings,
    expires_delta: timedelta | None = None,
) -> str:
    """Создаёт подписанный JWT access-токен оператора."""
    exp = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    payload = {
        "sub": operator.email,
        "role": operator.role_name,
        "exp": exp,
        "jti": uuid4().hex,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: CampusGridSettings) -> dict:
    """Декодирует и проверяет JWT (подпись + срок действия)."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthError(f"Invalid token: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════════
# Зависимость FastAPI
# ═══════════════════════════════════════════════════════════════════════════


async def get_current_operator(
    request: Request,
    authorization: str | None = Header(None),
) -> Operator:
    """
    Извлекает оператора из заголовка ``Authorization``.

    Алгоритм:
        1. Проверяет наличие и формат ``Bearer <token>``.
        2. Декодирует JWT.
        3. Проверяет, что токен не отозван (logout).
        4. Загружает оператора из хранилища sandbox.

    Raises:
        AuthError: токен отсутствует, невалиден, отозван; оператор не найден.
    """
    if not authorization:
        raise AuthError("Authorization header is required")
    if not authorization.startswith("Bearer "):
        raise AuthError("Authorization header must start with 'Bearer'")

    store = request.app.state.store
    payload = decode_token(authorization[7:], store.settings)

    if store.is_revoked(payload.get("jti")):
        raise AuthError("Session has been logged out")

    operator = store.get_operator(payload.get("sub") or "")
    if operator is None:
        raise AuthError("Operator not found")

    request.state.token_claims = payload
    return operator

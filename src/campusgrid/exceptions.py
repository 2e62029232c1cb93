"""
═══════════════════════════════════════════════════════════════════════════════
CampusGrid Console — Иерархия ошибок (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Базовый класс ``CampusGridError``. Локальные ошибки (ValidationError,
StatusTransitionError, PermissionDeniedError) никогда не доходят до сети.
Удалённые ошибки (NetworkError, ApplicationError, AuthError) всегда
поднимаются к вызывающему коду.

HTTP-маппинг кодов для sandbox выполняется в
``campusgrid.sandbox.app:campusgrid_error_handler``.
"""

from __future__ import annotations


class CampusGridError(Exception):
    """
    Базовое исключение для всех ошибок консоли.

    Атрибуты
    ────────
        message (str):  Описание ошибки. Показывается оператору как есть.
        code (str):     Строковый код. Используется для маппинга на HTTP-статус.
        details (dict): Дополнительные данные (field, id и т.д.).
    """

    def __init__(
        self,
        message: str,
        code: str = "CAMPUSGRID_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════════════════
# Локальные ошибки (без сетевого запроса)
# ═══════════════════════════════════════════════════════════════════════════


class ValidationError(CampusGridError):
    """Ошибка валидации полей черновика: 422 Unprocessable Entity."""

    def __init__(
        self,
        message: str,
        field_errors: dict[str, str] | None = None,
        details: dict | None = None,
    ):
        self.field_errors = dict(field_errors or {})
        merged = dict(details or {})
        if self.field_errors:
            merged.setdefault("fields", self.field_errors)
        super().__init__(message, code="CAMPUSGRID_VALIDATION_ERROR", details=merged)


class StatusTransitionError(CampusGridError):
    """StatusMachine отклонила переход до отправки запроса."""

    def __init__(self, current: str, requested: str, reason: str):
        super().__init__(
            message=f"Cannot change status from {current} to {requested}: {reason}",
            code="CAMPUSGRID_TRANSITION_ERROR",
            details={"current": current, "requested": requested},
        )


class PermissionDeniedError(CampusGridError):
    """У оператора недостаточно прав на действие: 403 Forbidden."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="CAMPUSGRID_PERMISSION_DENIED")


class SubmissionInProgressError(CampusGridError):
    """Повторная отправка, пока предыдущий запрос создания ещё не завершён."""

    def __init__(self) -> None:
        super().__init__(
            "An onboarding request is already in progress",
            code="CAMPUSGRID_SUBMISSION_IN_PROGRESS",
        )


# ═══════════════════════════════════════════════════════════════════════════
# Удалённые ошибки
# ═══════════════════════════════════════════════════════════════════════════


class NetworkError(CampusGridError):
    """Запрос не завершился (DNS, соединение, таймаут). Можно повторить."""

    def __init__(self, message: str = "Could not reach the CampusGrid API. Please try again."):
        super().__init__(message, code="CAMPUSGRID_NETWORK_ERROR")


class ApplicationError(CampusGridError):
    """Сервер ответил non-2xx с сообщением; сообщение показывается дословно."""

    def __init__(self, message: str, status_code: int | None = None, code: str = "CAMPUSGRID_APPLICATION_ERROR"):
        self.status_code = status_code
        super().__init__(message, code=code, details={"status_code": status_code})


class NotFoundError(ApplicationError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: str, message: str | None = None):
        super().__init__(
            message or f"{entity} not found: {entity_id}",
            status_code=404,
            code="CAMPUSGRID_NOT_FOUND",
        )
        self.details.update({"entity": entity, "id": entity_id})


class ConflictError(CampusGridError):
    """Конфликт с текущим состоянием: 409 Conflict (sandbox)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="CAMPUSGRID_CONFLICT", details=details)


class AuthError(CampusGridError):
    """
    Сессия недействительна: 401 / 403.

    Консоль не решает, что делать дальше: сигнал поднимается к оболочке
    (CLI), которая сама вызывает ``OperatorSession.teardown()``.
    """

    def __init__(self, message: str = "Session is no longer valid", status_code: int = 401):
        self.status_code = status_code
        super().__init__(message, code="CAMPUSGRID_AUTH_ERROR", details={"status_code": status_code})


__all__ = [
    "CampusGridError",
    "ValidationError",
    "StatusTransitionError",
    "PermissionDeniedError",
    "SubmissionInProgressError",
    "NetworkError",
    "ApplicationError",
    "NotFoundError",
    "ConflictError",
    "AuthError",
]

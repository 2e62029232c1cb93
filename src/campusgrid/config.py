"""
═══════════════════════════════════════════════════════════════════════════════
CampusGrid Console — Настройки (Application Configuration)
═══════════════════════════════════════════════════════════════════════════════

Класс CampusGridSettings для клиента онбординга и sandbox-сервера.
Содержит настройки:
    • Remote API (base URL, таймаут)
    • Мастер онбординга (домен платформы, политика валидации)
    • Sandbox (host, port, учётная запись оператора)
    • JWT (только для sandbox)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CampusGridSettings(BaseSettings):
    """
    Настройки консоли CampusGrid.

    Все параметры читаются из переменных окружения или .env файла.
    Префикс не используется (API_BASE_URL, PLATFORM_DOMAIN и т.д.).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Среда выполнения ──────────────────────────────────────────────────
    app_env: str = Field(
        default="development",
        description="Application environment: development | staging | production",
    )
    log_level: str = Field(default="INFO")

    # ── Remote API ────────────────────────────────────────────────────────
    api_base_url: str = Field(
        default="http://localhost:4000/api",
        description="Base URL of the platform REST API (without trailing slash)",
    )
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # ── Мастер онбординга ─────────────────────────────────────────────────
    platform_domain: str = Field(
        default="campusgrid.in",
        description="Parent domain used to derive a group's domain name",
    )
    revalidate_before_submit: bool = Field(
        default=False,
        description="Re-check every wizard step right before the creation request",
    )
    require_affiliated_board: bool = Field(
        default=False,
        description="Require at least one affiliated board on the Organization step",
    )
    send_idempotency_key: bool = Field(
        default=True,
        description="Attach an Idempotency-Key header to creation requests",
    )

    # ── Sandbox (эмуляция REST API) ───────────────────────────────────────
    sandbox_host: str = Field(default="127.0.0.1")
    sandbox_port: int = Field(default=4000, ge=1, le=65535)
    sandbox_admin_email: str = Field(default="admin@campusgrid.in")
    sandbox_admin_password: str = Field(default="changeme")
    sandbox_admin_name: str = Field(default="Platform Admin")
    sandbox_admin_role: str = Field(default="superadmin")

    # ── JWT (sandbox) ─────────────────────────────────────────────────────
    jwt_secret_key: str = Field(default="CHANGE_ME_IN_PRODUCTION")
    jwt_algorithm: str = Field(default="HS256")
    jwt_access_token_expire_minutes: int = Field(default=60, ge=1)

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        """Убирает завершающий слэш, чтобы пути склеивались одинаково."""
        return v.rstrip("/")

    @field_validator("platform_domain")
    @classmethod
    def _normalize_domain(cls, v: str) -> str:
        v = v.strip().strip(".").lower()
        if not v:
            raise ValueError("PLATFORM_DOMAIN must not be empty")
        return v

    @model_validator(mode="after")
    def _validate_jwt_secret(self) -> "CampusGridSettings":
        """В production обязательно заменить JWT_SECRET_KEY."""
        unsafe = {"CHANGE_ME_IN_PRODUCTION", "secret", "changeme", ""}
        if self.app_env == "production" and self.jwt_secret_key in unsafe:
            raise ValueError(
                "JWT_SECRET_KEY must be changed for production! "
                'Generate one: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        return self


@lru_cache
def get_settings() -> CampusGridSettings:
    """
    Возвращает единственный экземпляр CampusGridSettings (singleton).

    Декоратор ``@lru_cache`` гарантирует, что объект создаётся
    только при первом вызове.
    """
    return CampusGridSettings()


__all__ = ["CampusGridSettings", "get_settings"]

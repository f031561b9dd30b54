from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain import StockUpdateMode


class Settings(BaseSettings):
    app_name: str = Field("Marketline", alias="APP_NAME")
    jwt_secret: str = Field("local-dev-secret-change-me", alias="JWT_SECRET")
    jwt_issuer: str = Field("marketline", alias="JWT_ISSUER")
    token_ttl_seconds: int = Field(3600, alias="TOKEN_TTL_SECONDS")
    cors_allow_origins: str = Field("", alias="CORS_ALLOW_ORIGINS")
    request_id_header: str = Field("X-Request-Id", alias="REQUEST_ID_HEADER")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    database_url: str = Field("", alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")
    mongodb_url: str = Field("", alias="MONGODB_URL")
    mongodb_database: str = Field("marketline", alias="MONGODB_DATABASE")
    catalog_seed_path: str = Field("", alias="CATALOG_SEED_PATH")
    stock_update_mode: StockUpdateMode = Field(StockUpdateMode.ATOMIC, alias="STOCK_UPDATE_MODE")

    smtp_host: str = Field("", alias="SMTP_HOST")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_user: str = Field("", alias="SMTP_USER")
    smtp_password: str = Field("", alias="SMTP_PASSWORD")
    smtp_starttls: bool = Field(True, alias="SMTP_STARTTLS")
    mail_from: str = Field("no-reply@marketline.local", alias="MAIL_FROM")

    rate_limit_enabled: bool = Field(False, alias="RATE_LIMIT_ENABLED")
    rate_limit_default: str = Field("120/minute", alias="RATE_LIMIT_DEFAULT")
    otel_enabled: bool = Field(False, alias="OTEL_ENABLED")
    otel_service_name: str = Field("marketline", alias="OTEL_SERVICE_NAME")
    otel_exporter_otlp_endpoint: str = Field("", alias="OTEL_EXPORTER_OTLP_ENDPOINT")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


def resolve_env_file() -> Optional[Path]:
    explicit = os.getenv("MARKETLINE_ENV_FILE")
    if explicit:
        return Path(explicit)
    default = Path.cwd() / "config" / "api.env"
    if default.exists():
        return default
    return None


def load_settings() -> Settings:
    env_file = resolve_env_file()
    if env_file:
        return Settings(_env_file=str(env_file))
    return Settings()

# app/core/settings.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === App ===
    APP_NAME: str = "Conciliación RESICO"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # === DB ===
    # DB_URL tiene prioridad (p. ej. sqlite:///./conciliacion.db para desarrollo)
    DB_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = Field(default=3306)
    DB_NAME: str = "conciliacion_resico"
    DB_USER: str = "root"
    DB_PASSWORD: SecretStr = Field(default=SecretStr(""))

    # === CORS ===
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # === Matching (valores por defecto de MatchingConfig) ===
    MATCH_AMOUNT_TOLERANCE: Decimal = Decimal("0.005")
    MATCH_MAX_DATE_DIFF: int = 7
    MATCH_MIN_CONFIDENCE: Decimal = Decimal("0.65")

    # Pydantic Settings v2
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return str(v).upper()

    # Listas derivadas
    @property
    def cors_origins_list(self) -> List[str]:
        if not self.CORS_ORIGINS.strip():
            return []
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    # URL de conexión (escapa la contraseña por seguridad)
    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        pwd = self.DB_PASSWORD.get_secret_value()
        return f"mysql+pymysql://{self.DB_USER}:{quote_plus(pwd)}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"


settings = Settings()

"""
Configurações da aplicação usando Pydantic Settings.

Carrega variáveis de ambiente e valida configurações necessárias.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configurações globais da aplicação."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Aplicação
    PROJECT_NAME: str = "Cadastro API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    ENVIRONMENT: str = "development"  # development, staging, production

    # CORS
    ALLOWED_ORIGINS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = [
        "authorization",
        "x-client-info",
        "apikey",
        "content-type",
    ]

    # Supabase (banco + auth)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_ANON_KEY: str = ""

    @field_validator("SUPABASE_URL", "SITE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Remove barra final para montar URLs sem duplicidade."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    # Provedor de identidade
    IDENTITY_PROVIDER: Literal["supabase", "firebase"] = "supabase"
    FIREBASE_CREDENTIALS_PATH: str = ""  # Caminho para service account JSON (dev)
    FIREBASE_PROJECT_ID: str = ""

    # Link de redirecionamento após confirmação de email
    SITE_URL: str | None = None

    # Política de cadastro
    MIN_PASSWORD_LENGTH: int | None = 8  # None = apenas presença
    COMPENSATE_PROVIDER_ACCOUNT: bool = True
    PASSWORD_HASH_SCHEME: Literal["hex_sha256", "bcrypt"] = "hex_sha256"

    # Limite por chamada externa (banco ou provedor)
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Retorna instância cacheada das configurações."""
    return Settings()


settings = get_settings()

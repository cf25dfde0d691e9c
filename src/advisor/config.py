"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SYSTEM_PROMPT = (
    "Tu es un conseiller en investissement expert et bienveillant de BNP Paribas "
    "Private Banking. Tu aides les utilisateurs à comprendre leurs options "
    "d'investissement, à prendre des décisions éclairées et à construire un "
    "portefeuille adapté à leur profil de risque. Tu es concis, pédagogue et tu "
    "utilises des exemples concrets. Tu parles français. Si l'utilisateur demande "
    "une synthèse visuelle de sa stratégie, tu peux lui proposer de générer une "
    "plaque récapitulative élégante."
)


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gateway_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices(
            "LOVABLE_API_KEY",
            "ADVISOR_GATEWAY_API_KEY",
            "gateway_api_key",
        ),
    )
    gateway_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://ai.gateway.lovable.dev/v1"),
        validation_alias=AliasChoices("ADVISOR_GATEWAY_BASE_URL", "gateway_base_url"),
    )
    chat_model: str = Field(
        default="google/gemini-2.5-flash",
        validation_alias=AliasChoices("ADVISOR_CHAT_MODEL", "chat_model"),
    )
    image_model: str = Field(
        default="google/gemini-2.5-flash-image",
        validation_alias=AliasChoices("ADVISOR_IMAGE_MODEL", "image_model"),
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("ADVISOR_SYSTEM_PROMPT", "system_prompt"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("ADVISOR_GATEWAY_TIMEOUT", "request_timeout"),
        ge=1,
    )

    @field_validator("gateway_api_key")
    @classmethod
    def _require_credential(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("LOVABLE_API_KEY is not configured")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_SYSTEM_PROMPT", "Settings", "get_settings"]

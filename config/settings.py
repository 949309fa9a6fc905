# config/settings.py
"""Application configuration and settings."""
import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _csv(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    # Server Configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", 8000))
    RELOAD: bool = os.getenv("RELOAD", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

    # OpenAI Configuration
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL")
    OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))
    OPENAI_MAX_TOKENS: int = int(os.getenv("OPENAI_MAX_TOKENS", "800"))
    GENERATION_TIMEOUT_SECONDS: float = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))

    # Hasura Configuration
    HASURA_GRAPHQL_URL: Optional[str] = os.getenv("HASURA_GRAPHQL_URL")
    # Admin secret is only ever used for schema introspection
    HASURA_ADMIN_SECRET: Optional[str] = os.getenv("HASURA_ADMIN_SECRET")
    EXECUTION_TIMEOUT_SECONDS: float = float(os.getenv("EXECUTION_TIMEOUT_SECONDS", "30"))
    SCHEMA_CACHE_TTL_SECONDS: float = float(os.getenv("SCHEMA_CACHE_TTL_SECONDS", "300"))

    # Rate Limiting
    GENERATION_RATE_LIMIT: int = int(os.getenv("GENERATION_RATE_LIMIT", "10"))
    GENERATION_RATE_WINDOW_SECONDS: float = float(os.getenv("GENERATION_RATE_WINDOW_SECONDS", "60"))
    EXECUTION_RATE_LIMIT: int = int(os.getenv("EXECUTION_RATE_LIMIT", "20"))
    EXECUTION_RATE_WINDOW_SECONDS: float = float(os.getenv("EXECUTION_RATE_WINDOW_SECONDS", "60"))

    # Access Policy
    ACCESS_POLICY_PATH: Optional[str] = os.getenv("ACCESS_POLICY_PATH")

    # Request Handling
    MAX_REQUEST_LENGTH: int = int(os.getenv("MAX_REQUEST_LENGTH", "1000"))
    ALLOWED_ROLES: list = _csv("ALLOWED_ROLES", "developer,org_admin,manager,consultant")
    DEFAULT_ROLE: str = os.getenv("DEFAULT_ROLE", "viewer")

    # API Configuration
    API_TITLE: str = "Payroll Data Assistant API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Natural language to GraphQL with security validation"

    # CORS Configuration
    CORS_ORIGINS: list = _csv("CORS_ORIGINS", "*")
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["Authorization", "Content-Type", "X-User-Id", "X-User-Role"]

    @classmethod
    def is_openai_configured(cls) -> bool:
        """Check if OpenAI is properly configured."""
        return bool(cls.OPENAI_API_KEY)

    @classmethod
    def is_hasura_configured(cls) -> bool:
        """Check if a Hasura endpoint is available."""
        return bool(cls.HASURA_GRAPHQL_URL)

settings = Settings()

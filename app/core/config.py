from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or a .env file.
    """
    # Identity provider
    AUTH0_DOMAIN: str
    # Base URL of the client app; sign-in/sign-out redirect to HOME_LOCATION + "/learn"
    HOME_LOCATION: str

    # 'production' disables the development and legacy login routes
    ENVIRONMENT: str = "development"
    DEV_LOGIN_EMAIL: str = "foo@bar.com"

    # AWS Configuration
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None
    AWS_DEFAULT_REGION: str = "us-east-1"
    DYNAMODB_ENDPOINT_URL: Optional[str] = None  # e.g. LocalStack
    DYNAMODB_USERS_TABLE_NAME: str = "users"
    DYNAMODB_USERS_EMAIL_INDEX: str = "email-index"
    DYNAMODB_SESSIONS_TABLE_NAME: str = "sessions"

    # Sessions
    SESSION_SECRET: SecretStr
    SESSION_STORE: str = "dynamodb"  # 'dynamodb' or 'memory'
    SESSION_COOKIE_NAME: str = "sessionId"
    # The legacy sign-in flow uses its own cookie, not the one /callback sets
    LEGACY_SESSION_COOKIE_NAME: str = "connect.sid"
    SESSION_TTL_SECONDS: int = 43200
    SESSION_COOKIE_SECURE: bool = False

    # Logging level
    LOG_LEVEL: str = "INFO"
    # Rich console output; disable for plain lines (e.g. when shipping logs as text)
    LOG_RICH: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

    @field_validator("HOME_LOCATION")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("SESSION_TTL_SECONDS")
    @classmethod
    def _min_ttl(cls, value: int) -> int:
        return max(value, 60)

    @field_validator("SESSION_STORE")
    @classmethod
    def _known_store(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"dynamodb", "memory"}:
            raise ValueError("SESSION_STORE must be 'dynamodb' or 'memory'")
        return value

    @property
    def dev_routes_enabled(self) -> bool:
        return self.ENVIRONMENT.strip().lower() != "production"

@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the Settings object.
    """
    return Settings()

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Extra attempts for a unit of work after a transient store error.
    store_retry_attempts: int = Field(1, alias="STORE_RETRY_ATTEMPTS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    default_currency: str = Field("BDT", alias="DEFAULT_CURRENCY")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

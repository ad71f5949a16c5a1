from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("factura-chat", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Billing backend (mock AFIP bridge)
    billing_api_base_url: str = Field("http://localhost:3001/api", alias="BILLING_API_BASE_URL")
    billing_backend: Literal["http", "local"] = Field("http", alias="BILLING_BACKEND")
    billing_timeout_seconds: float = Field(10.0, alias="BILLING_TIMEOUT_SECONDS")

    # CORS allowed origins (comma-separated list)
    cors_origins: str = Field("http://localhost:5173,http://127.0.0.1:5173", alias="CORS_ORIGINS")

    # Invoice fabrication (mock backend)
    point_of_sale: int = Field(1, alias="POINT_OF_SALE")
    cae_validity_days: int = Field(10, alias="CAE_VALIDITY_DAYS")
    afip_environment: str = Field("development", alias="AFIP_ENVIRONMENT")

    # Fill missing fields with demo values when the user asks for a "prueba"/"test" invoice
    test_mode_autofill: bool = Field(False, alias="TEST_MODE_AUTOFILL")

    # Chat limits
    max_message_length: int = Field(1000, alias="MAX_MESSAGE_LENGTH")
    session_ttl_minutes: int = Field(60, alias="SESSION_TTL_MINUTES")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()

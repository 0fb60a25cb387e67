from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    sqlite_path: str = "workflows.db"


class SecuritySettings(BaseModel):
    encryption_key: str = Field(..., description="Fernet key used to decrypt stored provider credentials.")
    appeal_token_secret: str = Field(..., description="HMAC secret for signing appeal tokens.")
    appeal_token_ttl_hours: int = Field(default=24 * 30, ge=1)


class PaymentSettings(BaseModel):
    base_url: str = "https://api.stripe.com"
    timeout_seconds: float = 15.0


class WebhookSettings(BaseModel):
    base_url: str
    api_key: str
    timeout_seconds: float = 10.0


class EmailSettings(BaseModel):
    base_url: str = "https://api.resend.com"
    api_key: str
    from_address: str = "notifications@example.com"
    timeout_seconds: float = 10.0


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    backoff_min_seconds: float = Field(default=0.5, ge=0)
    backoff_max_seconds: float = Field(default=30.0, gt=0)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")
    use_json: bool = Field(default=False, description="Use JSON format instead of colored output")


class WorkflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MODWF_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    public_base_url: str = Field(..., description="Base URL used to build appeal links.")
    security: SecuritySettings
    webhooks: WebhookSettings
    email: EmailSettings
    payments: PaymentSettings = PaymentSettings()
    retry: RetrySettings = RetrySettings()
    storage: StorageSettings = StorageSettings()
    logging: LoggingSettings = LoggingSettings()

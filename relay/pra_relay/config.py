"""PRA approvals relay configuration: loaded from environment variables / .env file."""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Conversation reference store (SQLite path)
    storage_connection_string: str = "/app/data/conversation_references.db"

    # Decision-processing endpoint
    functionapp_url: str = "http://localhost:7071/api/handleapproval"
    functionapp_key: str = ""

    # Bot Framework credentials
    microsoft_app_id: str = ""
    microsoft_app_password: str = ""
    microsoft_app_tenant_id: str = "botframework.com"

    # Server
    port: int = 3978
    log_level: str = "INFO"

    # Timeouts
    decision_timeout_seconds: float = 15.0
    gateway_timeout_seconds: float = 30.0
    connector_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        # logging only accepts upper-case level names
        return value.strip().upper()


settings = Settings()

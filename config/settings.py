"""
Centralized configuration for the RadioCare chatbot.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONTEXTS_PATH = str(Path(__file__).resolve().parent / "contexts.json")


class Settings(BaseSettings):
    """Application settings."""

    # Brand
    brand_name: str = Field(default="RadioCare", env="BRAND_NAME")

    # LLM provider selection
    llm_provider: str = Field(default="openai", env="LLM_PROVIDER")  # openai | bedrock
    llm_enabled: bool = Field(default=True, env="LLM_ENABLED")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_llm_model: str = Field(default="gpt-4o-mini", env="OPENAI_LLM_MODEL")

    # AWS / Bedrock
    aws_region: str = Field(default="us-east-1", env="AWS_REGION")
    bedrock_llm_model_id: str = Field(
        default="us.anthropic.claude-sonnet-4-20250514-v1:0", env="BEDROCK_LLM_MODEL_ID"
    )

    # Context selection call (must fail fast, it gates the rest of the turn)
    selection_timeout_seconds: float = Field(default=10.0, env="SELECTION_TIMEOUT_SECONDS")
    selection_retries: int = Field(default=0, env="SELECTION_RETRIES")
    selection_max_tokens: int = Field(default=64, env="SELECTION_MAX_TOKENS")
    selection_temperature: float = Field(default=0.0, env="SELECTION_TEMPERATURE")

    # Reply generation call
    generation_timeout_seconds: float = Field(default=20.0, env="GENERATION_TIMEOUT_SECONDS")
    generation_retries: int = Field(default=2, env="GENERATION_RETRIES")
    generation_max_tokens: int = Field(default=2048, env="GENERATION_MAX_TOKENS")
    generation_temperature: float = Field(default=0.7, env="GENERATION_TEMPERATURE")

    # Backoff between generation attempts
    retry_base_delay_seconds: float = Field(default=1.0, env="RETRY_BASE_DELAY_SECONDS")
    retry_max_delay_seconds: float = Field(default=5.0, env="RETRY_MAX_DELAY_SECONDS")

    # Context catalog
    contexts_path: str = Field(default=DEFAULT_CONTEXTS_PATH, env="CONTEXTS_PATH")
    contexts_backup_dir: str = Field(default="./backups", env="CONTEXTS_BACKUP_DIR")

    # Conversation
    history_window: int = Field(default=5, env="HISTORY_WINDOW")
    max_message_length: int = Field(default=2000, env="MAX_MESSAGE_LENGTH")
    slow_request_ms: int = Field(default=10_000, env="SLOW_REQUEST_MS")
    turn_timeout_seconds: float = Field(default=60.0, env="TURN_TIMEOUT_SECONDS")

    # Benefit account defaults (INR)
    default_total_coverage: float = Field(default=500_000, env="DEFAULT_TOTAL_COVERAGE")
    default_facility: str = Field(default="PGIMER Chandigarh", env="DEFAULT_FACILITY")

    # Clinician alerts
    clinician_webhook_url: Optional[str] = Field(default=None, env="CLINICIAN_WEBHOOK_URL")
    clinician_webhook_api_key: Optional[str] = Field(default=None, env="CLINICIAN_WEBHOOK_API_KEY")
    clinician_webhook_timeout: float = Field(default=10.0, env="CLINICIAN_WEBHOOK_TIMEOUT")

    # Database
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_title: str = Field(default="RadioCare Patient Support Chat API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    cors_origins: str = Field(default="*", env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @model_validator(mode="after")
    def _check_budgets(self) -> "Settings":
        if self.selection_timeout_seconds >= self.generation_timeout_seconds:
            raise ValueError(
                "selection_timeout_seconds must be shorter than generation_timeout_seconds"
            )
        if self.turn_timeout_seconds <= self.selection_timeout_seconds:
            raise ValueError("turn_timeout_seconds must be longer than selection_timeout_seconds")
        return self

    @property
    def is_bedrock(self) -> bool:
        return self.llm_provider.lower() == "bedrock"

    @property
    def is_openai(self) -> bool:
        return self.llm_provider.lower() == "openai"

    @property
    def llm_model_id(self) -> str:
        if self.is_bedrock:
            return self.bedrock_llm_model_id
        return self.openai_llm_model

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

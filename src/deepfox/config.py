"""
Configuration module for the Deep Fox booking assistant.

Loads environment variables and provides configuration settings including
the database location, the Gemini API key and the timing knobs of the
simulated backend.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy connection string for the appointment store
        gemini_api_key: Optional Google Gemini API key for intent classification
        gemini_model: Gemini model name
        quiescence_seconds: Delay before a confirmed conversation resets to idle
        backend_latency_scale: Multiplier for simulated backend latency (0 disables it)
        mock_otp_code: Code accepted by the mock verification service
        log_level: Console log level override
        log_dir: Directory for log files
        environment: Logging preset (development, production or test)
        business_name: Name used in the greeting
    """

    # Database configuration
    database_url: str = Field(
        default="sqlite:///deepfox.db",
        alias="DATABASE_URL",
        description="SQLAlchemy connection string"
    )

    # Intent classifier
    gemini_api_key: Optional[str] = Field(
        default=None,
        alias="GEMINI_API_KEY",
        description="Google Gemini API key"
    )

    gemini_model: str = Field(
        default="gemini-2.5-flash",
        alias="GEMINI_MODEL",
        description="Gemini model used for intent classification"
    )

    # Conversation timing
    quiescence_seconds: float = Field(
        default=6.0,
        ge=0,
        alias="QUIESCENCE_SECONDS",
        description="Seconds to wait after confirmation before resetting to idle"
    )

    # Mock backend
    backend_latency_scale: float = Field(
        default=1.0,
        ge=0,
        alias="BACKEND_LATENCY_SCALE",
        description="Multiplier applied to simulated backend latency"
    )

    mock_otp_code: str = Field(
        default="1234",
        alias="MOCK_OTP_CODE",
        description="One-time code accepted by the mock SMS gateway"
    )

    # Logging
    log_level: Optional[str] = Field(
        default=None,
        alias="LOG_LEVEL",
        description="Minimum console log level"
    )

    log_dir: str = Field(
        default="logs",
        alias="LOG_DIR",
        description="Directory for rotating log files"
    )

    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="development, production or test"
    )

    business_name: str = Field(
        default="Consultancy Deep Fox",
        alias="BUSINESS_NAME",
        description="Name used in the greeting"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


from functools import lru_cache
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging
import os
from dotenv import load_dotenv


class Settings(BaseSettings):
    """Engine settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Service information
    SERVICE_NAME: str = "intent-engine"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    ENABLE_STRUCTURED_LOGGING: bool = True

    # Text processing
    MAX_VOCAB_SIZE: int = 10000
    MIN_WORD_FREQ: int = 2

    # Network hyperparameters
    LEARNING_RATE: float = 0.01
    WEIGHT_INIT_RANGE: float = 0.1
    LOSS_EPSILON: float = 1e-15
    RANDOM_SEED: Optional[int] = None
    EPOCH_LOG_INTERVAL: int = 100

    # Training policy
    DEFAULT_EPOCHS: int = 100
    RETRAIN_EPOCHS: int = 50
    MIN_TRAINING_EXAMPLES: int = 50
    RETRAIN_THRESHOLD: int = 10

    # Inference and analytics
    TOP_K_PREDICTIONS: int = 3
    PREDICTION_TEXT_MAX_LENGTH: int = 255
    PREDICTION_STATS_WINDOW: int = 1000

    # Storage configuration
    STORAGE_BACKEND: str = "memory"
    MODEL_STORE_BACKEND: str = "memory"
    MODEL_STORE_PATH: str = "models/intent_model.joblib"
    MONGODB_URI: Optional[str] = None
    MONGODB_DATABASE: str = "nutrition_chatbot"

    @field_validator("LEARNING_RATE", "WEIGHT_INIT_RANGE", "LOSS_EPSILON")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Hyperparameters must be strictly positive."""
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is one the logging module knows."""
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        if v not in ("memory", "mongodb"):
            raise ValueError("STORAGE_BACKEND must be 'memory' or 'mongodb'")
        return v

    @field_validator("MODEL_STORE_BACKEND")
    @classmethod
    def validate_model_store_backend(cls, v: str) -> str:
        if v not in ("memory", "file", "mongodb"):
            raise ValueError("MODEL_STORE_BACKEND must be 'memory', 'file' or 'mongodb'")
        return v


def load_env_file() -> None:
    """Load environment variables from .env file if it exists."""
    env_path = os.path.join(os.getcwd(), ".env")
    if os.path.exists(env_path):
        load_dotenv(dotenv_path=env_path)


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache engine settings.

    Returns:
        Settings: Engine settings instance
    """
    load_env_file()
    return Settings()

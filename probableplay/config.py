"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Gemini LLM Configuration
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MAX_TOKENS: int = 8192
    LLM_TIMEOUT_SECONDS: int = 60
    LLM_SEARCH_GROUNDING: bool = True  # googleSearch tool on every request

    # Sampling temperatures per request kind
    STANDARD_PREDICTION_TEMPERATURE: float = 0.7
    DETAILED_FORECAST_TEMPERATURE: float = 0.1  # near-deterministic score lines
    BACKTEST_TEMPERATURE: float = 0.7

    # History ledger
    HISTORY_KEY: str = "probable_play_history_v2"
    HISTORY_CAPACITY: int = 50
    HISTORY_STORE_DIR: str = "./data/history"

    # Accuracy
    ACCURACY_TREND_WINDOW: int = 10

    # Backtesting (hard ceiling bounds external cost per run)
    BACKTEST_MAX_MATCHES: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

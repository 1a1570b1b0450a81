"""
Runtime settings, read from the environment (.env supported).
"""
import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings(BaseModel):
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash-lite"
    mock_llm: bool = False
    mock_market_data: bool = False
    llm_temperature: float = 0.2

    # Admission control for the reasoning collaborator
    llm_min_interval_seconds: float = 1.0
    llm_rate_limit_cooldown_seconds: float = 25.0
    llm_retry_delay_seconds: float = 1.5
    llm_max_retries: int = 2
    llm_max_queue: int = 8

    history_days: int = 180
    news_days: int = 7

    log_level: str = "INFO"
    log_json: bool = False

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash-lite"),
            mock_llm=_flag("MOCK_LLM"),
            mock_market_data=_flag("MOCK_MARKET_DATA"),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
            llm_min_interval_seconds=float(os.getenv("LLM_MIN_INTERVAL_SECONDS", "1.0")),
            llm_rate_limit_cooldown_seconds=float(os.getenv("LLM_RATE_LIMIT_COOLDOWN_SECONDS", "25")),
            llm_retry_delay_seconds=float(os.getenv("LLM_RETRY_DELAY_SECONDS", "1.5")),
            llm_max_retries=int(os.getenv("LLM_MAX_RETRIES", "2")),
            llm_max_queue=int(os.getenv("LLM_MAX_QUEUE", "8")),
            history_days=int(os.getenv("HISTORY_DAYS", "180")),
            news_days=int(os.getenv("NEWS_DAYS", "7")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_flag("LOG_JSON"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
        )


def get_settings() -> Settings:
    return Settings.from_env()

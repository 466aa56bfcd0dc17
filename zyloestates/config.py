from typing import Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)
    database_url: str = Field(default="sqlite+pysqlite:///:memory:", alias="DATABASE_URL")
    seed_sample_data: bool = Field(default=True, alias="SEED_SAMPLE_DATA")

    listings_feed_url: str = Field(default="https://moneytreerealty.in/api/properties", alias="LISTINGS_FEED_URL")
    listings_media_base_url: str = Field(default="https://moneytreerealty.in/", alias="LISTINGS_MEDIA_BASE_URL")
    listings_feed_timeout: float = Field(default=15.0, alias="LISTINGS_FEED_TIMEOUT")
    # 0 imports the whole feed
    listings_import_limit: int = Field(default=10, alias="LISTINGS_IMPORT_LIMIT")
    import_on_startup: bool = Field(default=True, alias="IMPORT_ON_STARTUP")
    # Seeds the generator behind synthesized builder rating/verified values
    placeholder_seed: Optional[int] = Field(default=None, alias="PLACEHOLDER_SEED")

    # Provisional scoring and pricing heuristics, all amounts in rupees
    verified_credibility_threshold: int = Field(default=80, alias="VERIFIED_CREDIBILITY_THRESHOLD")
    price_on_request_band: Tuple[int, int] = (50_000_000, 200_000_000)
    price_fallback_band: Tuple[int, int] = (30_000_000, 150_000_000)
    price_spread_low: str = "0.9"
    price_spread_high: str = "1.3"

    llm_provider: str = Field(default="openai", alias="LLM_PROVIDER")
    llm_model: str = Field(default="llama3.1:8b", alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.4, alias="LLM_TEMPERATURE")
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")


def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]

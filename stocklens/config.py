from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into environment BEFORE any settings classes are instantiated
load_dotenv()


class MarketDataSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MARKET_DATA_")

    api_base: str = Field(default="https://api.polygon.io", description="Polygon-compatible REST base URL")
    api_key: str = ""
    timeout_seconds: float = Field(default=10.0, description="Per-request timeout for market data calls")
    fallback_enabled: bool = Field(default=True, description="Fall back to yfinance when the primary fails")
    news_limit: int = Field(default=10, description="News items requested per ticker")

    # Retry settings for provider calls
    max_retries: int = Field(default=3, description="Max attempts for a provider call")
    retry_backoff_base: float = Field(default=1.0, description="Exponential backoff base (seconds)")
    retry_backoff_max: float = Field(default=4.0, description="Max backoff delay (seconds)")


class LLMSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LLM_")

    # API Keys for all providers
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    deepseek_api_key: str = ""

    provider: str = Field(default="auto", description="openai|anthropic|deepseek|auto (infer from model)")
    model: str = "gpt-4o-mini"
    temperature: float = 0.2

    # Hard timeout for one narrative request (batched or streamed)
    timeout_seconds: float = Field(default=20.0, description="Narrative request timeout (seconds)")

    max_retries: int = Field(default=2, description="Client-level retries performed by the chat model")


class AnalysisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ANALYSIS_")

    history_days: int = Field(default=730, description="Calendar days of daily bars to fetch")
    max_series_points: int = Field(default=180, description="Max price points embedded in a snapshot")
    max_news_items: int = Field(default=8, description="Max news items embedded in a snapshot")
    min_series_points: int = Field(default=60, description="Min snapshot points before requesting a narrative")
    volume_window: int = Field(default=90, description="Trailing bars for the average volume")


class APISettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8787
    cors_origins: list[str] = Field(default=["*"], description='JSON list, e.g. ["http://localhost:5173"]')
    base_url: str = Field(default="http://localhost:8787", description="Where NarrativeClient reaches the API")


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level: DEBUG|INFO|WARNING|ERROR")
    format: str = Field(default="json", description="json|console")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables (handled by nested settings)
    )

    environment: str = Field(default="development", description="development|staging|production")

    market_data: MarketDataSettings = Field(default_factory=MarketDataSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    api: APISettings = Field(default_factory=APISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    fii_env: str = "dev"

    fii_db_url: str = "sqlite:///./fii_tracker.db"
    fii_log_level: str = "INFO"

    # --- brapi.dev quotes ---
    brapi_base_url: str = "https://brapi.dev/api/quote"
    brapi_token: str | None = None

    fii_quote_timeout_seconds: float = 15.0
    # 1 keeps the batch serialized (brapi rate limits)
    fii_quote_fetch_workers: int = 1
    fii_quote_use_yfinance: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # don't crash on other future vars
    }


settings = Settings()

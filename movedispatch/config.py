from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite+pysqlite:///./movedispatch.db"
    log_level: str = "INFO"
    reaper_interval_seconds: int = 60
    availability_max_days: int = 62
    # Shared with the payment provider. Webhooks are refused while unset.
    payment_webhook_secret: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="")


settings = Settings()

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    database_url: str
    auto_create_tables: bool = True
    cors_origins: str = ""

    # Empty path falls back to Application Default Credentials.
    firebase_credentials_json: str | None = None

    apns_key_path: str | None = None
    apns_key_id: str | None = None
    apns_team_id: str | None = None
    apns_topic: str = "com.ankit.aman.Fixisy"
    apns_production: bool = True
    apns_timeout_seconds: float = 10.0

    fcm_batch_size: int = Field(default=500, ge=1, le=500)
    apns_batch_size: int = Field(default=1000, ge=1, le=1000)
    resolver_max_workers: int = Field(default=8, ge=1)


settings = Settings()

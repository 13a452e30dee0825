from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="INSPECTR_", env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 4004
    LOG_JSON: bool = True
    # Outbound broadcast sink (the hub's publish endpoint)
    BROADCAST_URL: str = "http://localhost:4004/api/sse"
    BROADCAST_TIMEOUT: float = 5.0
    BROADCAST_ENABLED: bool = True
    PRINT_ENABLED: bool = True
    # Request bodies above this many bytes are not decoded
    BODY_LIMIT: int = 50 * 1024 * 1024
    # SSE subscribers
    SSE_PING_INTERVAL: float = 15.0
    SUBSCRIBER_QUEUE_SIZE: int = 1000

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

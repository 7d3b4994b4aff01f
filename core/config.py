from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./orders.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Downstream services
    COURIER_SERVICE_URL: str = "http://localhost:5003/api"
    NOTIFICATION_SERVICE_URL: str = "http://localhost:5005/api"
    DEPENDENCY_TIMEOUT_SECONDS: float = 5.0
    NOTIFICATION_MAX_RETRIES: int = 3
    NOTIFICATION_RETRY_BACKOFF_SECONDS: float = 1.0

    LOCATION_PERSISTENCE_ENABLED: bool = True
    LOCATION_HISTORY_LIMIT: int = 50

    ORDER_RATE_LIMIT: str = "100/15minutes"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


settings = Settings()

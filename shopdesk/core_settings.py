from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "shopdesk"
    POSTGRES_USER: str = "shopdesk"
    POSTGRES_PASSWORD: str = "shopdesk"
    # Takes precedence over the POSTGRES_* settings when set
    DATABASE_URL: Optional[str] = None

    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    RUN_MIGRATIONS: bool = False

    REDIS_URL: Optional[str] = None
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 900

    DEFAULT_SKU_PREFIX: str = "SKU-"
    # Conditional stock decrements inside one transaction; off keeps sequential writes
    ORDER_CREATE_ATOMIC: bool = False

    PATHAO_BASE_URL: str = "https://api-hermes.pathao.com"
    PATHAO_TIMEOUT_SECONDS: float = 30.0
    PATHAO_DCC_CLIENT_ID: Optional[str] = None
    PATHAO_DCC_CLIENT_SECRET: Optional[str] = None
    PATHAO_DCC_USERNAME: Optional[str] = None
    PATHAO_DCC_PASSWORD: Optional[str] = None
    PATHAO_DCC_STORE_ID: Optional[str] = None
    PATHAO_GOBABY_CLIENT_ID: Optional[str] = None
    PATHAO_GOBABY_CLIENT_SECRET: Optional[str] = None
    PATHAO_GOBABY_USERNAME: Optional[str] = None
    PATHAO_GOBABY_PASSWORD: Optional[str] = None
    PATHAO_GOBABY_STORE_ID: Optional[str] = None

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

@lru_cache
def get_settings() -> Settings:
    return Settings()

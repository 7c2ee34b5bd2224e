from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="hubwallet/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Retro Hub Wallet API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = ""
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = ""

    # Explicit URL wins over the POSTGRES_* components
    DATABASE_URL: Optional[str] = "sqlite:///./hubwallet.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Resolve the SQLAlchemy URL from DATABASE_URL or POSTGRES_* vars"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Operators allowed to run whole-ledger checks (X-User-Id values)
    ADMIN_PLAYER_IDS: List[str] = []

    # Ledger
    LEDGER_MAX_DELTA: int = 1_000_000_000  # 단일 거래 델타 절대값 상한
    LEDGER_LOCK_TIMEOUT_MS: int = 3000  # 계정 row lock 대기 한도 (PostgreSQL)
    LEDGER_STATEMENT_TIMEOUT_MS: int = 10000
    RETRY_AFTER_SECONDS: int = 1

    # History
    HISTORY_DEFAULT_LIMIT: int = 50
    HISTORY_MAX_LIMIT: int = 100

    # Reward policy
    GAME_MAX_COINS_PER_RUN: int = 5000  # 한 판당 최대 코인 지급량
    SPIN_TICKET_COST: int = 5
    SPIN_MIN_REWARD: int = 10
    SPIN_MAX_REWARD: int = 59


settings = Settings()

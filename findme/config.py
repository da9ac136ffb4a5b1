from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="findme/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "FindMe Rewards API"
    PROJECT_NAME: str = "FindMe"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "findme"

    # 설정 시 POSTGRES_* 값보다 우선 (예: sqlite:///./findme.db)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "simple"  # simple | json

    # Point Management
    REGISTRATION_POINTS: int = 10  # 회원가입 보너스
    MISSING_REPORT_POINTS: int = 5  # 실종자 신고 제출
    SIGHTING_REPORT_POINTS: int = 10  # 목격 제보 승인
    SOCIAL_SHARE_POINTS: int = 1  # 신고 건 SNS 공유 (플랫폼별 1회)
    POINTS_HISTORY_DEFAULT_LIMIT: int = 50
    POINTS_HISTORY_MAX_LIMIT: int = 100

    # Rewards
    REWARDS_PAGE_SIZE: int = 6
    DEFAULT_VOUCHER_PREFIX: str = "FINDME"
    DEFAULT_VOUCHER_VALIDITY_DAYS: int = 30


settings = Settings()

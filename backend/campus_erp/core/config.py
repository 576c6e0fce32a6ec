from pydantic_settings import BaseSettings
from typing import List, Any
from decimal import Decimal
import json


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Campus ERP"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # ==========================================
    # Server
    # ==========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./campus_erp.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes

    # ==========================================
    # Security
    # ==========================================
    SECRET_KEY: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Request limits
    # ==========================================
    MAX_REQUEST_BODY_BYTES: int = 1048576  # 1MB

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # ==========================================
    # Pagination
    # ==========================================
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # ==========================================
    # Library circulation rules
    # ==========================================
    LIBRARY_STUDENT_MAX_BOOKS: int = 5
    LIBRARY_STAFF_MAX_BOOKS: int = 10
    LIBRARY_LOAN_PERIOD_DAYS: int = 14
    LIBRARY_MAX_RENEWALS: int = 2
    LIBRARY_LATE_FEE_PER_DAY: Decimal = Decimal("0.50")
    LIBRARY_GRACE_PERIOD_DAYS: int = 1
    LIBRARY_RESERVATION_HOLD_DAYS: int = 2
    LIBRARY_RESERVATION_EXPIRY_DAYS: int = 30
    LIBRARY_MAX_ACTIVE_RESERVATIONS: int = 5
    LIBRARY_UNPAID_FINES_LIMIT: Decimal = Decimal("10.00")

    # ==========================================
    # Finance
    # ==========================================
    PAYMENT_VOID_WINDOW_DAYS: int = 7

    # ==========================================
    # Attendance
    # ==========================================
    ATTENDANCE_WORK_START_HOUR: int = 8
    ATTENDANCE_GRACE_MINUTES: int = 15
    ATTENDANCE_HALF_DAY_HOURS: int = 4
    ATTENDANCE_THRESHOLD_PERCENT: int = 75

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG


# Create settings instance
settings = Settings()

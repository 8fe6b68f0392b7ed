from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "ACME Bet"
    # Application settings
    PORT: int = 8000
    HOST: str = "127.0.0.1"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    # SQLAlchemy database URL
    DATABASE_URL: str
    AUTO_CREATE_TABLES: bool = True

    # Wallet sign-in (EIP-4361 message fields)
    FRONTEND_URL: str = "http://localhost:3000"
    CHAIN_ID: int = 11155111  # sepolia
    SIWE_STATEMENT: str = "Sign in to ACME Bet"

    # Login configuration
    ACCESS_TOKEN_SECRET: str | None = None
    REFRESH_TOKEN_SECRET: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 1800 # 30 minutes
    REFRESH_TOKEN_EXPIRE_SECONDS: int = 30 * 24 * 3600 # 30 days

    # Persist the presented refresh token instead of the newly minted one on
    # refresh. Matches the legacy behavior; the presented token keeps working.
    SESSION_STORE_PRESENTED_REFRESH_TOKEN: bool = False

    # Take the client IP from X-Forwarded-For. Only enable behind a proxy that overwrites it.
    TRUST_PROXY_HEADERS: bool = False

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
	# App
	APP_NAME: str = "Facility Meter API"
	APP_VERSION: str = "1.0.0"
	API_V1_PREFIX: str = "/api/v1"
	DEBUG: bool = False
	ENVIRONMENT: str = "development" # development, staging, production
	LOG_LEVEL: str = "INFO"

	# Server
	PORT: int = 8000

	# Database
	DATABASE_URL: str = "sqlite+aiosqlite:///./facility.db"
	DB_ECHO: bool = False
	AUTO_CREATE_TABLES: bool = True
	RUN_STARTUP_CHECKS: bool = True

	# JWT
	JWT_SECRET: str = "change-me"
	JWT_ALGORITHM: str = "HS256"
	JWT_EXPIRATION_HOURS: int = 24
	JWT_REFRESH_EXPIRATION_DAYS: int = 7

	# Bootstrap admin, created on startup when no user exists
	FIRST_ADMIN_USERNAME: Optional[str] = None
	FIRST_ADMIN_PASSWORD: Optional[str] = None

	# CORS
	CORS_ORIGINS: List[str] = ["http://localhost:3000"]

	# Security
	BCRYPT_ROUNDS: int = 12
	ALLOWED_HOSTS: List[str] = ["*"]

	# Monitoring
	EXPOSE_METRICS: bool = True

	# Consumption
	TREND_DEFAULT_DAYS: int = 30
	MAX_IMPORT_SIZE: int = 5 * 1024 * 1024  # 5MB

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True
	)


@lru_cache()
def get_settings() -> Settings:
	return Settings()


settings = get_settings()

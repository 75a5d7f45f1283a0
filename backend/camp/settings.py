from typing import List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DEFAULT_LETTER_GRADES: List[Tuple[str, float]] = [
	("A", 90),
	("B", 80),
	("C", 70),
	("D", 60),
	("F", 0),
]


class Settings(BaseSettings):
	# Public address of the service; linked from parent emails
	school_uri: str = Field(default="http://localhost:8000", validation_alias="SCHOOL_URI")
	school_name: str = Field(default="Camp", validation_alias="SCHOOL_NAME")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Sessions idle this long are purged by the cleanup task
	session_max_age_days: int = Field(default=7, validation_alias="SESSION_MAX_AGE_DAYS")
	# Seed admin, created at startup if missing
	seed_username: str | None = Field(default=None, validation_alias="SEED_USERNAME")
	seed_password_plain: str | None = Field(default=None, validation_alias="SEED_PASSWORD")
	seed_email: str = Field(default="admin@localhost", validation_alias="SEED_EMAIL")

	# External document renderer (takes report fields as JSON, returns a PDF)
	renderer_url: str | None = Field(default=None, validation_alias="RENDERER_URL")
	renderer_timeout_seconds: float = Field(default=60.0, validation_alias="RENDERER_TIMEOUT")

	# Outbound mail (SendGrid-compatible v3 API)
	mail_api_key: str | None = Field(default=None, validation_alias="MAIL_API_KEY")
	mail_api_url: str = Field(default="https://api.sendgrid.com/v3/mail/send", validation_alias="MAIL_API_URL")
	mail_from: str = Field(default="noreply@localhost", validation_alias="MAIL_FROM")

	# Grading policy
	letter_grades: List[Tuple[str, float]] = Field(default=DEFAULT_LETTER_GRADES, validation_alias="LETTER_GRADES")
	# "today" or "year_start"
	autopace_anchor: str = Field(default="today", validation_alias="AUTOPACE_ANCHOR")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

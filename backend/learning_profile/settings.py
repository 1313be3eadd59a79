from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database backing the progress endpoints
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	# Days a saved attempt stays recoverable after its last save
	progress_ttl_days: int = Field(default=7, validation_alias="PROGRESS_TTL_DAYS")
	# Length of the assessment, used for recovery percentages
	total_questions: int = Field(default=24, validation_alias="TOTAL_QUESTIONS")
	# Purge loop period for expired rows
	cleanup_interval_seconds: int = Field(default=24 * 60 * 60, validation_alias="CLEANUP_INTERVAL_SECONDS")

	# Client side: where the progress service lives
	api_base_url: str = Field(default="http://localhost:8000", validation_alias="PROGRESS_API_BASE_URL")
	http_timeout_seconds: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT_SECONDS")
	http_max_retries: int = Field(default=2, validation_alias="HTTP_MAX_RETRIES")
	http_backoff_seconds: float = Field(default=0.5, validation_alias="HTTP_BACKOFF_SECONDS")

	# Autosave debounce (seconds)
	autosave_delay_seconds: float = Field(default=2.0, validation_alias="AUTOSAVE_DELAY_SECONDS")
	autosave_min_interval_seconds: float = Field(default=5.0, validation_alias="AUTOSAVE_MIN_INTERVAL_SECONDS")

	# Offline fallback file (stands in for browser localStorage)
	local_progress_path: Path = Field(
		default=Path.home() / ".learning_profile" / "progress.json",
		validation_alias="LOCAL_PROGRESS_PATH",
	)

	# Where `python -m learning_profile` serves the API
	host: str = Field(default="127.0.0.1", validation_alias="HOST")
	port: int = Field(default=8000, validation_alias="PORT")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

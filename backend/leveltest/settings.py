from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Tutoring backend that generates and grades level tests
	api_base_url: str = Field(default="http://localhost:8000", validation_alias="LEVELTEST_API_BASE_URL")
	api_timeout_seconds: float = Field(default=10.0, validation_alias="LEVELTEST_API_TIMEOUT")

	# Test shape used when the caller does not pass its own
	questions_per_objective: int = Field(default=2, ge=1, validation_alias="LEVELTEST_QUESTIONS_PER_OBJECTIVE")
	max_level: int = Field(default=3, ge=1, validation_alias="LEVELTEST_MAX_LEVEL")
	# Informational only; used when the generator does not estimate a duration
	minutes_per_question: float = Field(default=2.0, gt=0, validation_alias="LEVELTEST_MINUTES_PER_QUESTION")

	# Demo mode serves tests from the bundled question bank instead of the backend
	demo_mode: bool = Field(default=False, validation_alias="LEVELTEST_DEMO_MODE")

	log_level: str = Field(default="INFO", validation_alias="LEVELTEST_LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

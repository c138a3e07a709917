from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PORT: int = 5000
    DB_PATH: str = "/data/sensus.db"
    UPLOAD_DIR: str = "/data/uploads"
    LOG_LEVEL: str = "info"

    GEMINI_API_KEY: str = ""
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-1.5-flash"

    CLASSIFIER_TIMEOUT: float = 30.0
    CLASSIFIER_MAX_ATTEMPTS: int = 3
    CLASSIFIER_BASE_DELAY: float = 1.0

    SUBMISSION_COOLDOWN_HOURS: int = 24
    # 0 disables the candidate recency window
    MATCH_MAX_CANDIDATE_AGE_MINUTES: int = 0


settings = Settings()

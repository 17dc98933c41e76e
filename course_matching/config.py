from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- DB ---
    DATABASE_URL: str = "sqlite:///./course_matching.db"

    # --- JWT ---
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    # --- Scheduling ---
    # all recurring windows are wall-clock times in this fixed offset (KST)
    TIMEZONE_OFFSET_HOURS: int = 9
    SLOT_HORIZON_DAYS: int = 14
    DEFAULT_DURATION_MINUTES: int = 60
    AUTO_MATCH_MAX_CAPACITY: int = 4

    # --- Email ---
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "no-reply@localhost"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    # sqlalchemy.engine logs every statement at INFO
    SQL_LOG_LEVEL: str = "WARNING"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )

settings = Settings()

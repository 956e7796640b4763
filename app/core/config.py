from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str

    # credits granted by one ONE_TIME purchase
    ONE_TIME_MATCH_CREDITS: int = 1

    DB_TIMEOUT_SECONDS: int = 5
    AUTO_CREATE_TABLES: bool = False

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

settings = Settings()

ONE_TIME_MATCH_CREDITS = settings.ONE_TIME_MATCH_CREDITS
DB_TIMEOUT_SECONDS = settings.DB_TIMEOUT_SECONDS

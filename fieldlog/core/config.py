# fieldlog/core/config.py
from pydantic_settings import BaseSettings; from dotenv import load_dotenv
load_dotenv()
class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fieldlog.db"
    JWT_SECRET_KEY: str; JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    LOG_LEVEL: str = "INFO"
    # Engineer inbox shows only the most recent notifications
    NOTIFICATION_LIMIT: int = 20
    CATEGORY_LIMIT: int = 10
    DEFAULT_WEEKLY_HOURS: float = 40
    FIRST_ADMIN_EMAIL: str | None = None; FIRST_ADMIN_PASSWORD: str | None = None
settings = Settings()

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    DATABASE_DSN: str | None = None
    ENVIRONMENT: str = "local"

    # IANA zone used for calendar-day keys (must match the meal log's day boundaries)
    LOCAL_TIMEZONE: str = "UTC"

    # Burned-calorie guards
    BURNED_TDEE_MAX_KCAL: int = 15000
    BURNED_REFRESH_LOOKBACK_DAYS: int = 14
    BURN_REDUCTION_MAX_PCT: int = 50

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Base URL for WHOOP developer API (used by vendor.py)
    WHOOP_API_BASE: str = "https://api.prod.whoop.com"

    # Path to MyWhoop auto-refreshing token
    WHOOP_CREDENTIALS_PATH: str = "/data/mywhoop/credentials.json"


settings = Settings()

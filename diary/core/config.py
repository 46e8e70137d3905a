from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://diary:diary@db:5432/diary"
    APP_ENV: str = "development"
    API_TOKEN: str = "changeme-api-token"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # Calendar: days are bucketed in this zone, and anything logged before
    # LATE_NIGHT_CUTOFF_HOUR (local) still belongs to the previous day.
    TIMEZONE: str = "Asia/Tokyo"
    LATE_NIGHT_CUTOFF_HOUR: int = 1

    STATS_WINDOW_DAYS: int = 60
    HISTORY_BATCH: int = 14

    WEEKLY_COMMENT_MAX_CHARS: int = 520
    WEEKLY_COMMENT_HISTORY: int = 8
    WEEKLY_SUMMARY_LOOKBACK_WEEKS: int = 4
    WEEKLY_NOTE_MAX_CHARS: int = 160

    # Sessions unused for this long are closed on the next open/lookup.
    SESSION_IDLE_SECONDS: int = 12 * 60 * 60
    SESSION_MAX_OPEN: int = 64

    # The two participants. Emails are matched case-insensitively.
    MASTER_EMAIL: str = "master@example.com"
    MASTER_DISPLAY_NAME: str = "Master"
    PARTNER_EMAIL: str = "partner@example.com"
    PARTNER_DISPLAY_NAME: str = "Partner"

    @field_validator("LATE_NIGHT_CUTOFF_HOUR")
    @classmethod
    def check_cutoff_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("LATE_NIGHT_CUTOFF_HOUR must be between 0 and 23")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()

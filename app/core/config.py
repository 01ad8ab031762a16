from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 7 * 24 * 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Slot rules: Mon-Fri, local_start_hour..local_end_hour in the provider's offset
    slot_duration_minutes: int = 30
    local_start_hour: int = 9
    local_end_hour: int = 17
    workdays: tuple[int, ...] = (0, 1, 2, 3, 4)  # date.weekday(): Monday == 0

    # Appointments
    reason_max_length: int = 500
    default_page: int = 1
    default_limit: int = 10
    max_limit: int = 100

    # Periodic jobs (UTC). Monthly sliding window on the 15th, daily cleanup at 02:00.
    jobs_enabled: bool = True
    monthly_generation_day: int = 15
    monthly_generation_hour: int = 0
    daily_cleanup_hour: int = 2

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Slotbook"
    site_name: str = "Slotbook"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()

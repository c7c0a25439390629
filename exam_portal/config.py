"""Runtime configuration for the exam portal."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EXAM_PORTAL_", env_file=".env", extra="ignore")

    app_name: str = "Exam Portal"
    database_url: str = "sqlite:///./exam_portal.db"

    # Security
    jwt_secret: str = "CHANGE_ME_TO_A_RANDOM_SECRET"
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24

    # Admin account provisioned at startup
    admin_code: str = "ADMIN"
    admin_name: str = "Administrator"
    admin_password: str = "admin123"

    seed_sample_exams: bool = True
    # 0 disables the background sweep; expiry is then detected lazily on interaction
    expiry_sweep_seconds: int = 0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()

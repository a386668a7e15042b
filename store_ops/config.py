#config.py
import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    """ settings loader"""
    env: str = os.getenv("ENV", "dev")

    database_url: str = os.getenv("DATABASE_URL")
    db_user: str = os.getenv("DB_USER")
    db_pass: str = os.getenv("DB_PASSWORD")
    db_name: str = os.getenv("DB_NAME")
    db_host: str = os.getenv("DB_HOST", "localhost")
    db_port: str = os.getenv("DB_PORT", "5432")
    sql_echo: bool = os.getenv("SQL_ECHO", "0") == "1"

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", "*"))

    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "Asia/Kolkata")
    fallback_actor_name: str = os.getenv("FALLBACK_ACTOR_NAME", "Store Owner")

    status_log_default_limit: int = int(os.getenv("STATUS_LOG_DEFAULT_LIMIT", "50"))
    status_log_max_limit: int = int(os.getenv("STATUS_LOG_MAX_LIMIT", "100"))
    reconcile_attempts: int = int(os.getenv("RECONCILE_ATTEMPTS", "2"))

    def get_db_url(self):
        if self.database_url:
            return self.database_url
        if self.db_name:
            return f"postgresql+psycopg2://{self.db_user}:{self.db_pass}@{self.db_host}:{self.db_port}/{self.db_name}"
        return "sqlite:///./store_ops.db"

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("prod", "production")

    @property
    def is_development(self) -> bool:
        return self.env.lower() in {"dev", "development"}

settings = Settings()

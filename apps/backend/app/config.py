import os
from dataclasses import dataclass
from typing import Optional

import psycopg2


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class ScraperSettings:
    """Snapshot of the scraper's environment configuration"""
    db_url: Optional[str]
    env: str
    fetch_timeout: float
    detail_timeout: float
    freshness_hours: int
    enrich_details: bool
    source_delay_ms: int
    scheduler_disabled: bool
    scheduler_interval: int

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @classmethod
    def from_env(cls) -> "ScraperSettings":
        return cls(
            db_url=os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL"),
            env=os.getenv("SCRAPER_ENV", "production").lower(),
            fetch_timeout=float(os.getenv("SCRAPER_FETCH_TIMEOUT", "30")),
            detail_timeout=float(os.getenv("SCRAPER_DETAIL_TIMEOUT", "15")),
            freshness_hours=int(os.getenv("SCRAPER_FRESHNESS_HOURS", "24")),
            enrich_details=_env_bool("SCRAPER_ENRICH_DETAILS", "true"),
            source_delay_ms=int(os.getenv("SCRAPER_SOURCE_DELAY_MS", "5000")),
            scheduler_disabled=_env_bool("SCRAPER_DISABLE_SCHEDULER"),
            scheduler_interval=int(os.getenv("SCRAPER_SCHEDULER_INTERVAL", "3600")),
        )


def get_settings() -> ScraperSettings:
    return ScraperSettings.from_env()


class Capabilities:
    @staticmethod
    def is_db_enabled() -> bool:
        return bool(os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL"))

    @staticmethod
    def check_db_connection() -> bool:
        """Verify database connection with a trivial query"""
        db_url = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")
        if not db_url:
            return False

        try:
            # Use very short timeout for health checks (1 second max)
            conn = psycopg2.connect(db_url, connect_timeout=1)
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            cursor.close()
            conn.close()
            return True
        except psycopg2.Error:
            return False

    @staticmethod
    def is_ai_enabled() -> bool:
        return bool(os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY"))

    @staticmethod
    def is_scheduler_enabled() -> bool:
        return not _env_bool("SCRAPER_DISABLE_SCHEDULER")

    @classmethod
    def get_status(cls) -> dict:
        # db=true only if a database URL is configured and trivial query succeeds
        db = cls.check_db_connection()
        ai = cls.is_ai_enabled()

        if db and ai:
            status = "green"
        elif db:
            status = "amber"
        else:
            status = "red"

        return {
            "status": status,
            "components": {
                "db": db,
                "ai": ai,
                "scheduler": cls.is_scheduler_enabled(),
            },
        }


def get_env_presence() -> dict:
    required_vars = [
        "SCRAPER_ENV",
        "SUPABASE_DB_URL",
        "DATABASE_URL",
        "OPENROUTER_API_KEY",
        "OPENAI_API_KEY",
        "SCRAPER_LLM_MODEL",
        "SCRAPER_LLM_BASE_URL",
        "SCRAPER_USER_AGENT",
        "SCRAPER_ENRICH_DETAILS",
        "SCRAPER_DISABLE_SCHEDULER",
    ]

    return {var: bool(os.getenv(var)) for var in required_vars}

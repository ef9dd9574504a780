# config.py
# Configuration and environment variable loading

import os
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()


class Settings:
    """Runtime settings read from the environment"""

    def __init__(self):
        # Database connection URL (SQLite with aiosqlite driver by default)
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./medrounds.db")
        self.sql_echo: bool = os.getenv("SQL_ECHO", "false").lower() == "true"
        # Seconds a SQLite connection waits on a locked database
        self.db_timeout: float = float(os.getenv("DB_TIMEOUT", "30"))

        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Permanent wards provisioned at startup
        self.fixed_wards_raw: str = os.getenv("FIXED_WARDS", "Ward 3,Ward 4,ICU")
        self.ward_owner_id: str = os.getenv("WARD_OWNER_ID", "system")

    @property
    def fixed_wards(self) -> List[str]:
        return [label.strip() for label in self.fixed_wards_raw.split(",") if label.strip()]


# Global settings instance
settings = Settings()

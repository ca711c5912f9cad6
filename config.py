"""Configuration singleton for proptrust."""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.logging import RichHandler


class Config:
    """Singleton configuration class."""

    _instance: Optional["Config"] = None

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        load_dotenv()
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from environment variables."""
        # Database path
        default_db = Path.home() / ".proptrust" / "proptrust.db"
        db_path_str = os.getenv("DATABASE_PATH", str(default_db))
        self.database_path = Path(db_path_str).expanduser()

        # Log level
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # Optional API key for AI logbook import
        self.groq_api_key = os.getenv("GROQ_API_KEY", "")
        self.groq_model = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")

        # Logbook defaults
        self.office_address = os.getenv("OFFICE_ADDRESS", "Agency Office")
        self.vehicle_name = os.getenv("VEHICLE_NAME", "Audi Q5 (ABC-123)")
        self.logbook_rate_per_km = Decimal(os.getenv("LOGBOOK_RATE_PER_KM", "0.85"))

        # Flask session signing
        self.secret_key = os.getenv("SECRET_KEY", "dev-secret-key-change-in-prod")

    @property
    def database_dir(self) -> Path:
        """Get the directory containing the database."""
        return self.database_path.parent

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        self.database_dir.mkdir(parents=True, exist_ok=True)


def get_config() -> Config:
    """Get the singleton config instance."""
    return Config()


def configure_logging(level: Optional[str] = None) -> None:
    """Route log records through rich, at the configured level."""
    level = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )

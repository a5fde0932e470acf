from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Application
    app_name: str = os.getenv("APP_NAME", "Library Manager")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG")

    # Storage
    data_file: str = os.getenv("LIBRARY_DATA_FILE", os.path.join("Data", "library.json"))
    strict_persistence: bool = _env_flag("LIBRARY_STRICT_PERSISTENCE")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "DEBUG" if _env_flag("DEBUG") else "WARNING")

    # Display
    date_format: str = os.getenv("LIBRARY_DATE_FORMAT", "%d.%m.%Y")
    output_mode: str = os.getenv("LIB_CLI_OUTPUT", "plain")


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging for the CLI process."""
    name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

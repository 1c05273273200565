"""
Runtime configuration and logging setup.

Settings come from the environment; a `.env` file in the working directory
is loaded first if present. Every variable is optional:

    VIGENERE_DB_PATH          SQLite database file        (vigenere.db)
    VIGENERE_LOG_LEVEL        root log level               (INFO)
    VIGENERE_HOST             server bind address          (127.0.0.1)
    VIGENERE_PORT             server port                  (8000)
    VIGENERE_ALLOWED_ORIGINS  comma-separated CORS origins (*)
    VIGENERE_API_URL          base URL for the console client
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    db_path: str = "vigenere.db"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    api_url: str = "http://localhost:8000"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))
        port = os.getenv("VIGENERE_PORT", "8000")
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"VIGENERE_PORT must be an integer, got {port!r}")
        return cls(
            db_path=os.getenv("VIGENERE_DB_PATH", "vigenere.db"),
            log_level=(os.getenv("VIGENERE_LOG_LEVEL") or "INFO").strip().upper(),
            host=os.getenv("VIGENERE_HOST", "127.0.0.1"),
            port=port_number,
            allowed_origins=_split_origins(os.getenv("VIGENERE_ALLOWED_ORIGINS", "*")) or ["*"],
            api_url=os.getenv("VIGENERE_API_URL", "http://localhost:8000").rstrip("/"),
        )


def setup_logging(level: Optional[str] = None) -> None:
    """Install one stream handler on the root logger at the given level."""
    level_name = (level or "INFO").upper()
    numeric = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric)

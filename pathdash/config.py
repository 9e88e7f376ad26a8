from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

# DB SQLite di sviluppo nella root del progetto (accanto a streamlit_app.py)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "pathdash.sqlite"
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DB_PATH}"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None
    supabase_key: str | None
    database_url: str
    http_timeout: float
    log_level: str

    @property
    def uses_hosted_backend(self) -> bool:
        return bool(self.supabase_url)


def get_settings() -> Settings:
    """
    Legge la configurazione dall'ambiente.
    URL e chiave pubblica del backend hosted vanno impostati insieme:
    se mancano entrambi si usa il DB SQL locale.
    """
    url = (os.getenv("SUPABASE_URL") or "").strip() or None
    key = (os.getenv("SUPABASE_ANON_KEY") or "").strip() or None
    if bool(url) != bool(key):
        raise ConfigError("SUPABASE_URL and SUPABASE_ANON_KEY must be set together.")

    raw_timeout = os.getenv("PATHDASH_HTTP_TIMEOUT", "10")
    try:
        timeout = float(raw_timeout)
    except ValueError as e:
        raise ConfigError(f"PATHDASH_HTTP_TIMEOUT is not a number: {raw_timeout!r}") from e

    return Settings(
        supabase_url=url,
        supabase_key=key,
        database_url=os.getenv("PATHDASH_DATABASE_URL", DEFAULT_DATABASE_URL),
        http_timeout=timeout,
        log_level=os.getenv("PATHDASH_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or get_settings().log_level, format=LOG_FORMAT)
    # urllib3 logga ogni connessione a DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

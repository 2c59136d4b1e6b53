"""
config.py
Environment configuration (.env + process environment).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_VIACEP_URL = "https://viacep.com.br/ws"
PAGE_SIZE = 10


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None
    supabase_key: str | None
    viacep_url: str = DEFAULT_VIACEP_URL
    cep_timeout: float = 5.0
    log_level: str = "INFO"

    @property
    def has_supabase_config(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def load_settings() -> Settings:
    """
    Read settings from the environment, after loading a local .env if present.
    The VITE_* names of the old web front end are accepted as fallbacks.
    """
    load_dotenv()
    try:
        timeout = float(_env("CEP_TIMEOUT") or 5)
    except ValueError:
        timeout = 5.0
    return Settings(
        supabase_url=_env("SUPABASE_URL", "VITE_SUPABASE_URL"),
        supabase_key=_env("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
        viacep_url=(_env("VIACEP_URL") or DEFAULT_VIACEP_URL).rstrip("/"),
        cep_timeout=timeout,
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )

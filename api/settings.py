"""
Application settings.

Values come from the process environment, after a `.env` file in the project
root (if present) has been loaded with python-dotenv.

Environment variables:
- STORAGE_BACKEND: "memory" (default) or "supabase"
- SUPABASE_URL / SUPABASE_KEY: required for the supabase backend
- JWT_SECRET: HS256 secret used to verify admin bearer tokens
- CORS_ORIGINS: comma-separated allowed origins
- LOG_LEVEL: logging level name (default INFO)
- SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_USE_TLS, EMAIL_FROM:
  confirmation e-mail relay; without SMTP_HOST confirmations are only logged
- CONFERENCE_NAME: shown in confirmation e-mails
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

STORAGE_MEMORY = "memory"
STORAGE_SUPABASE = "supabase"

_DEFAULT_ENV_PATH = Path(__file__).parent.parent / ".env"


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    storage_backend: str = STORAGE_MEMORY
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    jwt_secret: str = "dev-secret-change-in-production"
    cors_origins: Tuple[str, ...] = ("http://localhost:5173",)
    log_level: str = "INFO"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "Conference Tickets <no-reply@example.com>"
    conference_name: str = "International Academic Forum"

    def __post_init__(self) -> None:
        if self.storage_backend not in (STORAGE_MEMORY, STORAGE_SUPABASE):
            raise RuntimeError(
                f"Invalid STORAGE_BACKEND '{self.storage_backend}'. "
                f"Use '{STORAGE_MEMORY}' or '{STORAGE_SUPABASE}'."
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        Pass `env` to read from a mapping instead of os.environ (no .env loading).
        """

        if env is None:
            load_dotenv(dotenv_path=env_file or _DEFAULT_ENV_PATH)
            env = os.environ

        origins = env.get("CORS_ORIGINS")
        return cls(
            storage_backend=(env.get("STORAGE_BACKEND") or STORAGE_MEMORY).strip().lower(),
            supabase_url=env.get("SUPABASE_URL") or None,
            supabase_key=env.get("SUPABASE_KEY") or None,
            jwt_secret=env.get("JWT_SECRET") or cls.jwt_secret,
            cors_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else cls.cors_origins
            ),
            log_level=(env.get("LOG_LEVEL") or cls.log_level).upper(),
            smtp_host=env.get("SMTP_HOST") or None,
            smtp_port=int(env.get("SMTP_PORT") or cls.smtp_port),
            smtp_user=env.get("SMTP_USER") or None,
            smtp_password=env.get("SMTP_PASSWORD") or None,
            smtp_use_tls=_as_bool(env.get("SMTP_USE_TLS"), cls.smtp_use_tls),
            email_from=env.get("EMAIL_FROM") or cls.email_from,
            conference_name=env.get("CONFERENCE_NAME") or cls.conference_name,
        )


__all__ = ["STORAGE_MEMORY", "STORAGE_SUPABASE", "Settings"]

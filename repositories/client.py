"""
Supabase client construction.

This module contains *only* the database connection setup. There is no
module-level client: the application factory builds one from its settings and
injects it into the Supabase stores, so importing this module never touches
the network or the environment.
"""

from __future__ import annotations

from typing import Optional

# The dependency is `supabase` (supabase-py).
from supabase import Client, create_client  # type: ignore[import-not-found]


def create_supabase_client(url: Optional[str], key: Optional[str]) -> Client:
    """
    Create the official Supabase client for the given project.

    Raises:
        RuntimeError: If the URL or key is missing.
    """

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key (server-side key only)."
        )

    return create_client(url, key)


__all__ = ["create_supabase_client"]

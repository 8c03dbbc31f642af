"""Supabase client for the shared digest store."""

from functools import lru_cache

from supabase import Client, create_client

from firenews.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Return a cached Supabase client authenticated with the service role key.

    Raises:
        RuntimeError: If the Supabase URL or service role key is missing.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the "
            "supabase store backend"
        )
    return create_client(settings.supabase_url, settings.supabase_service_role_key)

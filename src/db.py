from __future__ import annotations

from functools import lru_cache
from typing import Callable

from supabase import Client, create_client

from src.config import settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Build the service-role Supabase client used by routes and jobs."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be configured")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def get_supabase_provider() -> Callable[[], Client]:
    """Hand out the client factory so a handler can absorb construction failures."""
    return get_supabase

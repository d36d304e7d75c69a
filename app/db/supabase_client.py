"""Supabase client construction."""

from supabase import Client, create_client

from app.core.config import Settings, get_settings


def create_supabase(settings: Settings | None = None) -> Client:
    """
    Create a Supabase client configured with the service role key.

    Callers own the returned client; SupabaseStore is the only production caller.

    Raises:
        RuntimeError: If client initialization fails
    """
    settings = settings or get_settings()
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e

from fastapi import Request
from supabase import create_client, Client
from app.config import Settings


def create_supabase(settings: Settings) -> Client:
    """Client with service_role key; bypasses RLS, so every query must filter by clerk_id."""
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase(request: Request) -> Client:
    return request.app.state.supabase

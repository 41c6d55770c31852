"""Supabase (PostgREST) backend adapter."""

from ferry_captain.integrations.supabase.client import SupabaseBackend

__all__ = ["SupabaseBackend"]

"""
Supabase client for the worker.

Uses the SERVICE_ROLE key (not anon key) because:
1. This is a backend worker, not a browser client.
2. Uploads write to the notice bucket, which anonymous users may only read.
3. Never hand the service role key to the webhook consumer.

Created on first use so the worker can run with document storage disabled.
One client per (url, key) pair, so a job config with its own credentials
gets its own client.
"""

from __future__ import annotations

from supabase import Client, create_client

from noticeboard.config import Settings, settings

_clients: dict[tuple[str, str], Client] = {}


def get_supabase(config: Settings | None = None) -> Client:
    """Return the cached Supabase client for ``config`` (default: global settings)."""
    config = config or settings
    key = (config.supabase_url, config.supabase_service_role_key)
    if key not in _clients:
        _clients[key] = create_client(*key)
    return _clients[key]


def reset_client() -> None:
    """Drop the cached clients (for testing)."""
    _clients.clear()

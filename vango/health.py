"""
Connectivity check against the managed backend's REST root.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import requests


def describe_environment(supabase_url: Optional[str], anon_key: Optional[str]) -> dict:
    env = {
        "supabaseUrl": supabase_url or "MISSING",
        "hasAnonKey": bool(anon_key),
    }
    if anon_key:
        env["keyPrefix"] = anon_key[:20] + "..."
    return env


def check_supabase(
    supabase_url: Optional[str], anon_key: Optional[str], timeout: float = 10.0
) -> dict:
    """
    Issue one GET to `<supabase_url>/rest/v1/` with the anon key.

    Transport errors propagate as `requests.RequestException`.
    """
    if not supabase_url:
        raise requests.exceptions.InvalidURL("Supabase URL is not configured")

    url = f"{supabase_url.rstrip('/')}/rest/v1/"
    response = requests.get(
        url,
        headers={
            "apikey": anon_key or "",
            "Authorization": f"Bearer {anon_key or ''}",
        },
        timeout=timeout,
    )
    return {
        "status": "success",
        "environment": describe_environment(supabase_url, anon_key),
        "healthCheck": {
            "url": url,
            "status": response.status_code,
            "ok": response.ok,
            "statusText": response.reason,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

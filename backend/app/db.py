"""
Database client configuration.
The gateway reads stored emails and system settings from Supabase
(PostgreSQL via PostgREST) using the service-role key.
"""

import os
from typing import Optional

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

if not SUPABASE_URL:
    raise ValueError("SUPABASE_URL must be set in environment variables")

# Service-level client (bypasses RLS). None when no service key is configured;
# routes that need it report the database as unavailable.
supabase_admin: Optional[Client] = (
    create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY) if SUPABASE_SERVICE_KEY else None
)


def get_db() -> Optional[Client]:
    """FastAPI dependency returning the shared Supabase admin client."""
    return supabase_admin

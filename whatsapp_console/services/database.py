"""
Database Access
Supabase client factory and schema capability checks for optional tables
"""
import logging
from typing import Dict

from fastapi import HTTPException, status
from postgrest.exceptions import APIError
from supabase import Client, create_client

from whatsapp_console.config import settings as app_settings

logger = logging.getLogger(__name__)

# PostgREST "relation not in schema cache" and Postgres "undefined_table"
MISSING_TABLE_CODES = {"PGRST205", "42P01"}

# Tables the service can run without
OPTIONAL_TABLES = ("conversations", "uploaded_media")


def get_supabase_client() -> Client:
    """Get Supabase client from settings"""
    if not app_settings.is_supabase_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase is not configured"
        )

    key = app_settings.SUPABASE_SERVICE_KEY or app_settings.SUPABASE_KEY
    return create_client(app_settings.SUPABASE_URL, key)


def is_missing_table_error(error: APIError) -> bool:
    """Check whether a PostgREST error means the table is not provisioned"""
    if error.code in MISSING_TABLE_CODES:
        return True
    return "Could not find the table" in (error.message or "")


class SchemaCapabilities:
    """
    Reports which optional tables are provisioned.

    Callers branch on `is_provisioned()` instead of inspecting PostgREST
    error payloads. Results are cached for the lifetime of the instance,
    which is one request.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self._cache: Dict[str, bool] = {}

    def is_provisioned(self, table: str) -> bool:
        if table in self._cache:
            return self._cache[table]

        try:
            self.supabase.table(table).select("*").limit(1).execute()
            provisioned = True
        except APIError as e:
            if not is_missing_table_error(e):
                raise
            logger.info(f"Table '{table}' is not provisioned, skipping optional feature")
            provisioned = False

        self._cache[table] = provisioned
        return provisioned

    @property
    def has_conversations(self) -> bool:
        return self.is_provisioned("conversations")

    @property
    def has_uploaded_media(self) -> bool:
        return self.is_provisioned("uploaded_media")

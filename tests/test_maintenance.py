"""
Expired media sweep and cron secret tests
"""

from datetime import datetime, timezone

import pytest

from tests.conftest import FakeSupabase
from whatsapp_console.exceptions import StorageError, UnauthorizedError
from whatsapp_console.services.maintenance_service import MaintenanceService, verify_cron_secret

NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


class TestVerifyCronSecret:

    def test_accepts_matching_bearer(self):
        verify_cron_secret("Bearer s3cret", "s3cret")

    @pytest.mark.parametrize("header", [None, "", "s3cret", "Bearer wrong", "Basic s3cret"])
    def test_rejects_mismatch(self, header):
        with pytest.raises(UnauthorizedError):
            verify_cron_secret(header, "s3cret")

    @pytest.mark.parametrize("expected", [None, ""])
    def test_unset_secret_rejects_everything(self, expected):
        with pytest.raises(UnauthorizedError):
            verify_cron_secret("Bearer ", expected)
        with pytest.raises(UnauthorizedError):
            verify_cron_secret("Bearer anything", expected)


class TestCleanupExpiredMedia:

    def test_deletes_only_rows_older_than_retention(self, supabase):
        supabase.seed(
            "uploaded_media",
            {"id": "old", "created_at": "2026-02-01T00:00:00+00:00"},
            {"id": "edge", "created_at": "2026-03-02T12:00:00+00:00"},
            {"id": "fresh", "created_at": "2026-03-30T00:00:00+00:00"},
        )

        result = MaintenanceService(supabase, retention_days=30).cleanup_expired_media(now=NOW)

        assert result["deleted_count"] == 1
        assert [m["id"] for m in supabase.rows("uploaded_media")] == ["edge", "fresh"]
        # One delete statement
        assert supabase.executed.count(("uploaded_media", "delete")) == 1

    def test_nothing_to_delete(self, supabase):
        result = MaintenanceService(supabase).cleanup_expired_media(now=NOW)
        assert result["deleted_count"] == 0

    def test_storage_failure(self):
        with pytest.raises(StorageError):
            MaintenanceService(FakeSupabase(failing_tables={"uploaded_media"})).cleanup_expired_media(now=NOW)

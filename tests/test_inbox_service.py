"""
Inbox ordering and status update tests
"""

import pytest

from tests.conftest import FakeSupabase
from whatsapp_console.exceptions import NotFoundError, StorageError, ValidationError
from whatsapp_console.services.inbox_service import InboxService, sort_inbox


class TestSortInbox:

    def test_unread_first_then_latest_activity(self):
        messages = [
            {"id": "read-old", "status": "read", "created_at": "2026-03-01T08:00:00+00:00"},
            {"id": "unread-old", "status": "unread", "created_at": "2026-03-01T09:00:00+00:00"},
            {"id": "read-replied", "status": "read", "created_at": "2026-03-01T07:00:00+00:00",
             "reply_sent_at": "2026-03-02T07:00:00+00:00"},
            {"id": "unread-new", "status": "unread", "created_at": "2026-03-01T10:00:00+00:00"},
        ]

        ordered = [m["id"] for m in sort_inbox(messages)]

        assert ordered == ["unread-new", "unread-old", "read-replied", "read-old"]

    def test_ties_keep_input_order(self):
        same_time = "2026-03-01T10:00:00+00:00"
        messages = [
            {"id": "a", "status": "unread", "created_at": same_time},
            {"id": "b", "status": "unread", "created_at": same_time},
            {"id": "c", "status": "unread", "created_at": same_time},
        ]
        assert [m["id"] for m in sort_inbox(messages)] == ["a", "b", "c"]


class TestInboxService:

    def test_list_messages(self, supabase):
        supabase.seed(
            "webhook_messages",
            {"id": "1", "status": "read", "created_at": "2026-03-01T10:00:00+00:00"},
            {"id": "2", "status": "unread", "created_at": "2026-03-01T08:00:00+00:00"},
        )
        assert [m["id"] for m in InboxService(supabase).list_messages()] == ["2", "1"]

    def test_list_storage_failure(self):
        with pytest.raises(StorageError):
            InboxService(FakeSupabase(failing_tables={"webhook_messages"})).list_messages()

    def test_update_status(self, supabase):
        supabase.seed("webhook_messages", {"id": "1", "status": "unread"})

        updated = InboxService(supabase).update_status("1", "read")

        assert updated["status"] == "read"
        assert supabase.rows("webhook_messages")[0]["status"] == "read"

    def test_update_unknown_id(self, supabase):
        with pytest.raises(NotFoundError):
            InboxService(supabase).update_status("404", "read")

    @pytest.mark.parametrize("status", ["archived", "", None])
    def test_update_invalid_status(self, supabase, status):
        supabase.seed("webhook_messages", {"id": "1", "status": "unread"})
        with pytest.raises(ValidationError):
            InboxService(supabase).update_status("1", status)
        assert supabase.rows("webhook_messages")[0]["status"] == "unread"

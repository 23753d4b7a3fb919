"""
Settings store tests
"""

import pytest

from whatsapp_console.exceptions import ConfigurationError, NotFoundError, StorageError, ValidationError
from whatsapp_console.models.settings import SettingsSaveRequest
from whatsapp_console.services.settings_service import SettingsService, generate_verify_token


def _request(**overrides):
    data = {
        "business_account_id": "102290129340398",
        "phone_number_id": "106540352242922",
        "access_token": "EAAG-new",
    }
    data.update(overrides)
    return SettingsSaveRequest(**data)


class TestGetSettings:

    def test_none_when_nothing_saved(self, supabase):
        assert SettingsService(supabase).get_settings() is None

    def test_require_settings_raises_when_missing(self, supabase):
        with pytest.raises(ConfigurationError):
            SettingsService(supabase).require_settings()

    def test_require_settings_raises_when_incomplete(self, supabase, settings_row):
        supabase.seed("api_settings", {**settings_row, "access_token": None})
        with pytest.raises(ConfigurationError):
            SettingsService(supabase).require_settings()

    def test_storage_failure(self):
        from tests.conftest import FakeSupabase
        with pytest.raises(StorageError):
            SettingsService(FakeSupabase(failing_tables={"api_settings"})).get_settings()


class TestSaveSettings:

    @pytest.mark.parametrize("missing", ["business_account_id", "phone_number_id", "access_token"])
    def test_missing_required_field(self, supabase, missing):
        with pytest.raises(ValidationError):
            SettingsService(supabase).save_settings(_request(**{missing: None}))
        assert supabase.rows("api_settings") == []

    def test_first_save_inserts_with_generated_token(self, supabase):
        saved = SettingsService(supabase).save_settings(_request())

        assert len(supabase.rows("api_settings")) == 1
        assert saved.access_token == "EAAG-new"
        assert saved.webhook_verify_token.startswith("whatsapp_verify_")

    def test_first_save_keeps_supplied_token(self, supabase):
        saved = SettingsService(supabase).save_settings(_request(webhook_verify_token="my-token"))
        assert saved.webhook_verify_token == "my-token"

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_token_is_replaced_on_first_save(self, supabase, blank):
        saved = SettingsService(supabase).save_settings(_request(webhook_verify_token=blank))

        assert saved.webhook_verify_token.startswith("whatsapp_verify_")
        assert supabase.rows("api_settings")[0]["webhook_verify_token"] == saved.webhook_verify_token

    def test_blank_token_does_not_clear_existing(self, configured_supabase, settings_row):
        saved = SettingsService(configured_supabase).save_settings(_request(webhook_verify_token=""))
        assert saved.webhook_verify_token == settings_row["webhook_verify_token"]

    def test_second_save_updates_in_place(self, configured_supabase, settings_row):
        service = SettingsService(configured_supabase)

        saved = service.save_settings(_request(access_token="EAAG-rotated"))

        rows = configured_supabase.rows("api_settings")
        assert len(rows) == 1
        assert saved.id == settings_row["id"]
        assert saved.access_token == "EAAG-rotated"
        # Fields not supplied are left alone
        assert saved.webhook_verify_token == settings_row["webhook_verify_token"]
        assert saved.updated_at != settings_row["updated_at"]


class TestRegenerateToken:

    def test_no_record(self, supabase):
        with pytest.raises(NotFoundError):
            SettingsService(supabase).regenerate_verify_token()

    def test_replaces_token(self, configured_supabase, settings_row):
        updated = SettingsService(configured_supabase).regenerate_verify_token()

        assert updated.webhook_verify_token != settings_row["webhook_verify_token"]
        assert updated.webhook_verify_token.startswith("whatsapp_verify_")
        assert configured_supabase.rows("api_settings")[0]["webhook_verify_token"] == updated.webhook_verify_token

    def test_tokens_are_random(self):
        assert generate_verify_token() != generate_verify_token()

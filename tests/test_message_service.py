"""
Message dispatcher tests

The external send happens first; every local write after it is
best-effort and never undoes or fails the send.
"""

import json

import httpx
import pytest

from tests.conftest import FakeSupabase
from whatsapp_console.exceptions import (
    ConfigurationError,
    ExternalApiError,
    NotFoundError,
    TokenExpiredError,
    ValidationError,
)
from whatsapp_console.models.whatsapp import (
    BulkSendRequest,
    FreeBulkSendRequest,
    SendTemplateRequest,
    TemplateParameters,
)
from whatsapp_console.services.message_service import MessageService, build_template_components

SARA = "966512345678"


@pytest.fixture
def service(configured_supabase, graph):
    return MessageService(configured_supabase, whatsapp_factory=graph.factory)


@pytest.fixture
def inbox(configured_supabase):
    configured_supabase.seed(
        "webhook_messages",
        {"id": "old", "from_number": SARA, "replied": False, "status": "unread",
         "created_at": "2026-03-01T09:00:00+00:00"},
        {"id": "new", "from_number": SARA, "replied": False, "status": "unread",
         "created_at": "2026-03-01T10:00:00+00:00"},
        {"id": "done", "from_number": SARA, "replied": True, "status": "read",
         "created_at": "2026-03-01T11:00:00+00:00"},
        {"id": "other", "from_number": "201012345678", "replied": False, "status": "unread",
         "created_at": "2026-03-01T12:00:00+00:00"},
    )
    return configured_supabase


def _by_id(rows):
    return {row["id"]: row for row in rows}


class TestSendReply:

    @pytest.mark.asyncio
    async def test_success_updates_local_state(self, service, inbox, graph):
        graph.add("POST", graph.messages_path, json_body={"messages": [{"id": "wamid.reply1"}]})

        result = await service.send_reply("+966 51 234 5678", "Thanks for reaching out")

        assert result.success is True
        assert result.message_id == "wamid.reply1"

        payload = graph.sent_payloads(graph.messages_path)[0]
        assert payload["to"] == SARA
        assert payload["type"] == "text"
        assert payload["text"] == {"body": "Thanks for reaching out"}
        assert graph.requests[0].headers["Authorization"] == "Bearer EAAG-test-token"

        history = inbox.rows("message_history")
        assert len(history) == 1
        assert history[0]["to_number"] == SARA
        assert history[0]["message_type"] == "reply"
        assert history[0]["status"] == "sent"
        assert history[0]["message_id"] == "wamid.reply1"

        messages = _by_id(inbox.rows("webhook_messages"))
        assert messages["new"]["replied"] is True
        assert messages["new"]["reply_text"] == "Thanks for reaching out"
        assert messages["new"]["status"] == "read"
        assert messages["new"]["reply_sent_at"]
        # Only the most recent unreplied message is marked
        assert messages["old"]["replied"] is False
        assert messages["other"]["replied"] is False

        conversation = inbox.rows("conversations")[0]
        assert conversation["phone_number"] == SARA
        assert conversation["unread_count"] == 0
        assert conversation["has_replies"] is True

    @pytest.mark.asyncio
    async def test_no_unreplied_message_is_a_no_op(self, service, configured_supabase, graph):
        graph.add("POST", graph.messages_path, json_body={"messages": [{"id": "wamid.x"}]})

        result = await service.send_reply(SARA, "hello")

        assert result.success is True
        assert configured_supabase.rows("webhook_messages") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to_number, text", [("", "hi"), (SARA, ""), (None, None)])
    async def test_missing_fields(self, service, graph, to_number, text):
        with pytest.raises(ValidationError):
            await service.send_reply(to_number, text)
        assert graph.requests == []

    @pytest.mark.asyncio
    async def test_missing_settings_makes_no_external_call(self, supabase, graph):
        service = MessageService(supabase, whatsapp_factory=graph.factory)

        with pytest.raises(ConfigurationError):
            await service.send_reply(SARA, "hi")

        assert graph.requests == []

    @pytest.mark.asyncio
    async def test_provider_error_passes_status_through(self, service, inbox, graph):
        graph.add("POST", graph.messages_path, status_code=400, json_body={
            "error": {
                "message": "(#131047) Re-engagement message",
                "code": 131047,
                "error_data": {"details": "More than 24 hours have passed"},
            }
        })

        with pytest.raises(ExternalApiError) as exc_info:
            await service.send_reply(SARA, "hi")

        assert exc_info.value.status_code == 400
        assert "Re-engagement message" in exc_info.value.message
        assert "24 hours" in exc_info.value.message
        assert inbox.rows("message_history") == []
        assert all(not m["replied"] for m in inbox.rows("webhook_messages") if m["id"] != "done")

    @pytest.mark.asyncio
    async def test_token_expired(self, service, graph):
        graph.add("POST", graph.messages_path, status_code=401, json_body={
            "error": {"message": "Error validating access token", "type": "OAuthException", "code": 190}
        })

        with pytest.raises(TokenExpiredError) as exc_info:
            await service.send_reply(SARA, "hi")

        detail = exc_info.value.to_detail()
        assert exc_info.value.status_code == 401
        assert detail["errorType"] == "TOKEN_EXPIRED"
        assert detail["errorCode"] == 190

    @pytest.mark.asyncio
    async def test_oauth_exception_keeps_provider_status(self, service, inbox, graph):
        graph.add("POST", graph.messages_path, status_code=400, json_body={
            "error": {"message": "(#100) Invalid parameter", "type": "OAuthException", "code": 100}
        })

        with pytest.raises(TokenExpiredError) as exc_info:
            await service.send_reply(SARA, "hi")

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_detail()["errorType"] == "TOKEN_EXPIRED"
        assert inbox.rows("message_history") == []

    @pytest.mark.asyncio
    async def test_error_body_with_success_status(self, service, graph):
        graph.add("POST", graph.messages_path, json_body={"error": {"message": "Something odd", "code": 1}})

        with pytest.raises(ExternalApiError) as exc_info:
            await service.send_reply(SARA, "hi")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_failure(self, service, graph):
        graph.add("POST", graph.messages_path, error=httpx.ConnectError("connection refused"))

        with pytest.raises(ExternalApiError) as exc_info:
            await service.send_reply(SARA, "hi")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_bookkeeping_failure_does_not_fail_send(self, settings_row, graph):
        supabase = FakeSupabase(failing_tables={"message_history", "webhook_messages", "conversations"})
        supabase.seed("api_settings", settings_row)
        graph.add("POST", graph.messages_path, json_body={"messages": [{"id": "wamid.ok"}]})

        result = await MessageService(supabase, whatsapp_factory=graph.factory).send_reply(SARA, "hi")

        assert result.success is True
        assert result.message_id == "wamid.ok"


class TestSendTemplate:

    @pytest.fixture
    def templates(self, graph, sample_template):
        graph.add("GET", graph.templates_path, json_body={"data": [sample_template]})

    @pytest.mark.asyncio
    async def test_success(self, service, configured_supabase, graph, templates):
        graph.add("POST", graph.messages_path, json_body={
            "messages": [{"id": "wamid.tpl", "message_status": "accepted"}]
        })

        result = await service.send_template(SendTemplateRequest(
            phone_number="+966 51 234 5678",
            template_id="tpl-1",
            template_params=TemplateParameters(
                media_type="IMAGE",
                media_value="https://cdn.test/offer.jpg",
                body_variables=["Sara", "42"],
            ),
        ))

        assert result.success is True
        assert result.message_id == "wamid.tpl"
        assert result.status == "accepted"
        assert result.info["templateName"] == "promo_offer"

        payload = graph.sent_payloads(graph.messages_path)[0]
        assert payload["to"] == SARA
        assert payload["template"]["name"] == "promo_offer"
        assert payload["template"]["language"] == {"code": "ar"}
        assert payload["template"]["components"] == [
            {"type": "header", "parameters": [{"type": "image", "image": {"link": "https://cdn.test/offer.jpg"}}]},
            {"type": "body", "parameters": [{"type": "text", "text": "Sara"}, {"type": "text", "text": "42"}]},
        ]

        history = configured_supabase.rows("message_history")[0]
        assert history["message_type"] == "single"
        assert history["message_text"] == "Hello Sara, your code is 42"
        assert history["media_url"] == "https://cdn.test/offer.jpg"
        assert history["template_name"] == "promo_offer"
        assert history["status"] == "accepted"

    @pytest.mark.asyncio
    async def test_short_phone_number(self, service, graph):
        with pytest.raises(ValidationError):
            await service.send_template(SendTemplateRequest(phone_number="12345", template_id="tpl-1"))
        assert graph.requests == []

    @pytest.mark.asyncio
    async def test_unknown_template(self, service, graph, templates):
        with pytest.raises(NotFoundError):
            await service.send_template(SendTemplateRequest(phone_number=SARA, template_id="missing"))
        assert graph.sent_payloads(graph.messages_path) == []

    @pytest.mark.asyncio
    async def test_invalid_media_url(self, service, graph, templates):
        with pytest.raises(ValidationError):
            await service.send_template(SendTemplateRequest(
                phone_number=SARA,
                template_id="tpl-1",
                template_params=TemplateParameters(media_type="IMAGE", media_value="not a url"),
            ))


class TestBuildComponents:

    def test_media_id_header(self, sample_template):
        components, _ = build_template_components(
            sample_template,
            TemplateParameters(media_type="DOCUMENT", media_input_type="id", media_value="998877"),
        )
        assert components == [
            {"type": "header", "parameters": [{"type": "document", "document": {"id": "998877"}}]}
        ]

    def test_no_header_component(self):
        template = {"components": [{"type": "BODY", "text": "Hi {{1}}"}]}
        components, body = build_template_components(
            template,
            TemplateParameters(media_type="IMAGE", media_value="https://cdn.test/a.jpg", body_variables=["Ali"]),
        )
        assert [c["type"] for c in components] == ["body"]
        assert body == "Hi Ali"


class TestSendBulk:

    @pytest.mark.asyncio
    async def test_failures_are_counted_per_number(self, service, configured_supabase, graph, sample_template):
        graph.add("GET", graph.templates_path, json_body={"data": [sample_template]})

        def respond(request):
            to_number = json.loads(request.content)["to"]
            if to_number == "966500000004":
                return httpx.Response(400, json={"error": {"message": "Invalid recipient", "code": 131026}})
            return httpx.Response(200, json={"messages": [{"id": f"wamid.{to_number}"}]})

        graph.add("POST", graph.messages_path, responder=respond)

        numbers = [f"+96650000000{i}" for i in range(1, 7)] + ["966500000001", ""]
        result = await service.send_bulk(BulkSendRequest(phone_numbers=numbers, template_id="tpl-1"))

        assert result.total == 6
        assert result.sent == 5
        assert result.failed == 1
        assert result.success is True

        failed = [r for r in result.results if not r.success]
        assert [r.phone_number for r in failed] == ["966500000004"]
        assert failed[0].error == "Invalid recipient"
        assert [r.phone_number for r in result.results] == [f"96650000000{i}" for i in range(1, 7)]

        history = configured_supabase.rows("message_history")
        assert len(history) == 6
        assert {h["message_type"] for h in history} == {"bulk_instant"}
        failed_row = next(h for h in history if h["status"] == "failed")
        assert failed_row["to_number"] == "966500000004"
        assert failed_row["error_message"] == "Invalid recipient"

    @pytest.mark.asyncio
    async def test_no_numbers(self, service):
        with pytest.raises(ValidationError):
            await service.send_bulk(BulkSendRequest(phone_numbers=["", "  "], template_id="tpl-1"))


class TestSendFreeBulk:

    @pytest.mark.asyncio
    async def test_text_messages(self, service, configured_supabase, graph):
        def respond(request):
            to_number = json.loads(request.content)["to"]
            if to_number == "966500000002":
                return httpx.Response(400, json={"error": {"message": "Re-engagement message", "code": 131047}})
            return httpx.Response(200, json={"messages": [{"id": f"wamid.{to_number}"}]})

        graph.add("POST", graph.messages_path, responder=respond)

        result = await service.send_free_bulk(FreeBulkSendRequest(
            phone_numbers=["+966500000001", "966500000002", "966 500 000 003", "966500000001"],
            message_text="  Our store opens at 9  ",
        ))

        assert (result.total, result.sent, result.failed) == (3, 2, 1)
        payloads = graph.sent_payloads(graph.messages_path)
        assert {p["type"] for p in payloads} == {"text"}
        assert payloads[0]["text"] == {"body": "Our store opens at 9"}

        history = configured_supabase.rows("message_history")
        assert sorted(h["to_number"] for h in history) == ["966500000001", "966500000003"]
        assert {h["message_type"] for h in history} == {"bulk_free"}
        assert history[0]["media_url"] is None

    @pytest.mark.asyncio
    async def test_image_with_caption_by_url(self, service, configured_supabase, graph):
        graph.add("POST", graph.messages_path, json_body={"messages": [{"id": "wamid.img"}]})

        await service.send_free_bulk(FreeBulkSendRequest(
            phone_numbers=[SARA],
            message_text="New arrivals",
            media_url="https://cdn.test/new.jpg",
        ))

        payload = graph.sent_payloads(graph.messages_path)[0]
        assert payload["type"] == "image"
        assert payload["image"] == {"link": "https://cdn.test/new.jpg", "caption": "New arrivals"}
        assert configured_supabase.rows("message_history")[0]["media_url"] == "https://cdn.test/new.jpg"

    @pytest.mark.asyncio
    async def test_image_by_uploaded_media_id(self, service, graph):
        graph.add("POST", graph.messages_path, json_body={"messages": [{"id": "wamid.img"}]})

        await service.send_free_bulk(FreeBulkSendRequest(
            phone_numbers=[SARA],
            message_text="New arrivals",
            media_input_type="id",
            media_value="778899",
        ))

        assert graph.sent_payloads(graph.messages_path)[0]["image"] == {"id": "778899", "caption": "New arrivals"}

    @pytest.mark.asyncio
    async def test_token_expired_aborts_the_run(self, service, configured_supabase, graph):
        graph.add("POST", graph.messages_path, status_code=401, json_body={
            "error": {"message": "Error validating access token", "type": "OAuthException", "code": 190}
        })

        with pytest.raises(TokenExpiredError):
            await service.send_free_bulk(FreeBulkSendRequest(
                phone_numbers=[f"96650000000{i}" for i in range(1, 9)],
                message_text="hello",
            ))

        # Later batches are never attempted
        sent_to = {p["to"] for p in graph.sent_payloads(graph.messages_path)}
        assert sent_to <= {f"96650000000{i}" for i in range(1, 6)}
        assert configured_supabase.rows("message_history") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"phone_numbers": []},
        {"phone_numbers": ["", " - "]},
        {"message_text": "   "},
        {"media_url": "not a url"},
    ])
    async def test_invalid_input(self, service, graph, overrides):
        data = {"phone_numbers": [SARA], "message_text": "hello", **overrides}

        with pytest.raises(ValidationError):
            await service.send_free_bulk(FreeBulkSendRequest(**data))

        assert graph.requests == []

    @pytest.mark.asyncio
    async def test_missing_settings(self, supabase, graph):
        service = MessageService(supabase, whatsapp_factory=graph.factory)

        with pytest.raises(ConfigurationError):
            await service.send_free_bulk(FreeBulkSendRequest(phone_numbers=[SARA], message_text="hello"))

        assert graph.requests == []

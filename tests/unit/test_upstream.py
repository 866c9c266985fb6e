"""Unit tests for the upstream provider client."""

import json

import httpx
import pytest

from groqbot.catalog import OPENAI_MODELS
from groqbot.exceptions import UpstreamAuthError, UpstreamError
from groqbot.models import Message
from groqbot.upstream import (
    DONE_SENTINEL,
    build_chat_payload,
    build_headers,
    error_from_response,
    fetch_models,
    open_chat_stream,
    parse_event_line,
)
from tests.fakes.fake_upstream import openai_error_body, sse_body


LLAMA = OPENAI_MODELS["llama-3.1-8b-instant"]


class TestBuildHeaders:

    def test_bearer_key(self):
        headers = build_headers("gsk_abc", organization="")
        assert headers == {
            "Content-Type": "application/json",
            "Authorization": "Bearer gsk_abc",
        }

    def test_organization_header(self):
        headers = build_headers("gsk_abc", organization="org-123")
        assert headers["OpenAI-Organization"] == "org-123"

    def test_organization_from_settings(self, monkeypatch):
        from groqbot.config import settings

        monkeypatch.setattr(settings, "openai_organization", "org-env")
        assert build_headers("k")["OpenAI-Organization"] == "org-env"


class TestBuildChatPayload:

    def test_system_prompt_first(self):
        payload = build_chat_payload(
            LLAMA, "sys", 0.7, [Message(role="user", content="hi")]
        )
        assert payload == {
            "model": "llama-3.1-8b-instant",
            "messages": [
                {"role": "system", "content": "sys"},
                {"role": "user", "content": "hi"},
            ],
            "max_tokens": 1000,
            "temperature": 0.7,
            "stream": True,
        }


class TestParseEventLine:

    def test_content_delta(self):
        line = 'data: {"choices":[{"delta":{"content":"Hi"}}]}'
        assert parse_event_line(line) == "Hi"

    def test_done(self):
        assert parse_event_line("data: [DONE]") == DONE_SENTINEL

    @pytest.mark.parametrize("line", [
        "",
        ": keep-alive",
        "event: message",
        'data: {"choices":[{"delta":{"role":"assistant"}}]}',
        'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}',
        'data: {"choices":[],"x_groq":{"usage":{"total_tokens":12}}}',
    ])
    def test_lines_without_text(self, line):
        assert parse_event_line(line) == ""

    def test_malformed_json_raises(self):
        with pytest.raises(ValueError):
            parse_event_line("data: {oops")

    def test_error_event_raises(self):
        line = "data: " + openai_error_body("Rate limit reached", type="tokens", code="rate_limit_exceeded")

        with pytest.raises(UpstreamError) as exc_info:
            parse_event_line(line)

        assert exc_info.value.message == "Rate limit reached"
        assert exc_info.value.code == "rate_limit_exceeded"


class TestErrorFromResponse:

    def test_openai_error_body(self):
        error = error_from_response(
            429, "Too Many Requests", openai_error_body("Rate limit reached", type="tokens", code="rate_limit_exceeded")
        )
        assert type(error) is UpstreamError
        assert error.message == "Rate limit reached"
        assert error.type == "tokens"
        assert error.code == "rate_limit_exceeded"
        assert error.upstream_status == 429

    def test_401_is_auth_error(self):
        error = error_from_response(401, "Unauthorized", openai_error_body("Invalid API Key"))
        assert isinstance(error, UpstreamAuthError)
        assert error.message == "Invalid API Key"

    def test_plain_body(self):
        error = error_from_response(500, "Internal Server Error", "upstream exploded")
        assert error.message == "OpenAI API returned an error: upstream exploded"

    def test_empty_body_uses_reason(self):
        error = error_from_response(503, "Service Unavailable", "")
        assert error.message == "OpenAI API returned an error: Service Unavailable"


class TestOpenChatStream:

    async def test_yields_deltas_in_order(self, fake_upstream):
        fake_upstream.chat_body = sse_body(["The", " answer", " is", " 42"])

        async with fake_upstream.client() as client:
            deltas = await open_chat_stream(client, LLAMA, "sys", 1.0, "k", [])
            chunks = [text async for text in deltas]

        assert chunks == ["The", " answer", " is", " 42"]

    async def test_stops_at_done(self, fake_upstream):
        fake_upstream.chat_body = sse_body(["kept"]) + 'data: {"choices":[{"delta":{"content":"ignored"}}]}\n\n'

        async with fake_upstream.client() as client:
            deltas = await open_chat_stream(client, LLAMA, "sys", 1.0, "k", [])
            chunks = [text async for text in deltas]

        assert chunks == ["kept"]

    async def test_non_200_raises_before_streaming(self, fake_upstream):
        fake_upstream.chat_status = 401
        fake_upstream.chat_body = openai_error_body("Invalid API Key")

        async with fake_upstream.client() as client:
            with pytest.raises(UpstreamAuthError) as exc_info:
                await open_chat_stream(client, LLAMA, "sys", 1.0, "bad", [])

        assert exc_info.value.upstream_status == 401

    async def test_network_error_propagates(self, fake_upstream):
        fake_upstream.fail_with = httpx.ConnectError

        async with fake_upstream.client() as client:
            with pytest.raises(httpx.ConnectError):
                await open_chat_stream(client, LLAMA, "sys", 1.0, "k", [])

    async def test_api_host_override(self, fake_upstream):
        async with fake_upstream.client() as client:
            deltas = await open_chat_stream(
                client, LLAMA, "sys", 1.0, "k", [], api_host="https://proxy.internal"
            )
            await deltas.aclose()

        assert str(fake_upstream.requests[-1].url) == "https://proxy.internal/v1/chat/completions"

    async def test_aclose_before_iterating_releases_response(self, fake_upstream):
        async with fake_upstream.client() as client:
            deltas = await open_chat_stream(client, LLAMA, "sys", 1.0, "k", [])
            assert not deltas.response.is_closed

            await deltas.aclose()

        assert deltas.response.is_closed

    async def test_error_event_mid_stream_raises(self, fake_upstream):
        fake_upstream.chat_body = (
            sse_body(["Partial"], done=False)
            + "data: " + openai_error_body("Rate limit reached") + "\n\n"
        )

        chunks = []
        async with fake_upstream.client() as client:
            deltas = await open_chat_stream(client, LLAMA, "sys", 1.0, "k", [])
            with pytest.raises(UpstreamError):
                async for text in deltas:
                    chunks.append(text)

        assert chunks == ["Partial"]
        assert deltas.response.is_closed


class TestFetchModels:

    async def test_openai_shape(self, fake_upstream):
        async with fake_upstream.client() as client:
            ids = await fetch_models(client, "k")

        assert ids == ["llama-3.1-8b-instant", "gemma2-9b-it", "whisper-large-v3"]

    async def test_skips_entries_without_id(self, fake_upstream):
        fake_upstream.models_body = json.dumps([{"id": "gpt-4"}, {"object": "model"}, "junk"])

        async with fake_upstream.client() as client:
            ids = await fetch_models(client, "k")

        assert ids == ["gpt-4"]

    async def test_401_keeps_body(self, fake_upstream):
        fake_upstream.models_status = 401
        fake_upstream.models_body = openai_error_body("Invalid API Key")

        async with fake_upstream.client() as client:
            with pytest.raises(UpstreamAuthError) as exc_info:
                await fetch_models(client, "bad")

        assert json.loads(exc_info.value.body)["error"]["message"] == "Invalid API Key"

    async def test_error_status(self, fake_upstream):
        fake_upstream.models_status = 500

        async with fake_upstream.client() as client:
            with pytest.raises(UpstreamError):
                await fetch_models(client, "k")

    async def test_unexpected_payload(self, fake_upstream):
        fake_upstream.models_body = json.dumps({"object": "list", "data": "nope"})

        async with fake_upstream.client() as client:
            with pytest.raises(UpstreamError):
                await fetch_models(client, "k")

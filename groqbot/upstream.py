"""Client for the upstream Groq / OpenAI-compatible API.

A single best-effort attempt per call: no retry, no backoff. Transport
failures (httpx.HTTPError) propagate to the caller unchanged.

Streaming format (server-sent events from /v1/chat/completions):
    data: {"choices":[{"delta":{"content":"Hel"}}]}

    data: {"choices":[{"delta":{"content":"lo"}}]}

    data: [DONE]
"""

import json
import logging
from typing import AsyncIterator, List, Optional, Sequence

import httpx

from groqbot.catalog import OpenAIModel
from groqbot.config import settings
from groqbot.exceptions import UpstreamAuthError, UpstreamError
from groqbot.models import Message

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
MODELS_PATH = "/v1/models"

# Completion budget requested from the upstream
MAX_TOKENS = 1000

DONE_SENTINEL = "[DONE]"


def build_headers(key: str, organization: Optional[str] = None) -> dict[str, str]:
    """Headers for upstream requests. The organization header is optional."""
    if organization is None:
        organization = settings.openai_organization
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {key}",
    }
    if organization:
        headers["OpenAI-Organization"] = organization
    return headers


def build_chat_payload(
    model: OpenAIModel,
    system_prompt: str,
    temperature: float,
    messages: Sequence[Message],
) -> dict:
    """Chat completions request body: system prompt first, then history."""
    return {
        "model": model.id,
        "messages": [
            {"role": "system", "content": system_prompt},
            *[message.model_dump() for message in messages],
        ],
        "max_tokens": MAX_TOKENS,
        "temperature": temperature,
        "stream": True,
    }


def error_from_response(status_code: int, reason: str, body: str) -> UpstreamError:
    """Build the exception for a non-200 upstream response.

    OpenAI-style bodies ({"error": {"message", "type", "param", "code"}}) keep
    the upstream message; anything else gets a generic message with the raw
    body (or the reason phrase when the body is empty).
    """
    error_cls = UpstreamAuthError if status_code == 401 else UpstreamError

    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None

    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        return error_cls(
            error.get("message") or f"OpenAI API returned an error: {reason}",
            type=error.get("type"),
            param=error.get("param"),
            code=error.get("code"),
            upstream_status=status_code,
            body=body,
        )

    return error_cls(
        f"OpenAI API returned an error: {body or reason}",
        upstream_status=status_code,
        body=body,
    )


def parse_event_line(line: str) -> Optional[str]:
    """Extract the text delta from one SSE line.

    Returns:
        The delta text, "" for lines that carry no text (comments, empty
        deltas, role-only chunks), or DONE_SENTINEL at end of stream.

    Raises:
        UpstreamError: If the upstream reports an error inside the stream
            (e.g. a rate limit hit during generation)
        ValueError: If a data line is not valid JSON
    """
    line = line.strip()
    if not line.startswith("data:"):
        return ""

    data = line[len("data:"):].strip()
    if data == DONE_SENTINEL:
        return DONE_SENTINEL

    chunk = json.loads(data)
    if isinstance(chunk.get("error"), dict):
        error = chunk["error"]
        raise UpstreamError(
            error.get("message") or "OpenAI API returned an error mid-stream",
            type=error.get("type"),
            param=error.get("param"),
            code=error.get("code"),
            body=data,
        )

    choices = chunk.get("choices") or []
    if not choices:
        return ""
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


class ChatStream:
    """Text deltas of a streaming chat completion.

    Owns the upstream response: it is closed when iteration ends, or by
    aclose(), which is safe to call whether or not iteration ever started.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_deltas()

    async def _iter_deltas(self) -> AsyncIterator[str]:
        try:
            async for line in self.response.aiter_lines():
                text = parse_event_line(line)
                if text == DONE_SENTINEL:
                    break
                if text:
                    yield text
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self.response.aclose()


async def open_chat_stream(
    client: httpx.AsyncClient,
    model: OpenAIModel,
    system_prompt: str,
    temperature: float,
    key: str,
    messages: Sequence[Message],
    api_host: Optional[str] = None,
) -> ChatStream:
    """Start a streaming chat completion.

    The upstream status is checked before returning, so errors surface as
    exceptions rather than as a broken stream.

    Args:
        client: Shared HTTP client
        model: Model to query
        system_prompt: Sent as the first message
        temperature: Sampling temperature
        key: Upstream API key
        messages: Already-trimmed history, oldest first
        api_host: Override for OPENAI_API_HOST

    Returns:
        ChatStream of text deltas. It owns the upstream response and
        closes it when exhausted or on aclose().

    Raises:
        UpstreamAuthError: Upstream returned 401
        UpstreamError: Upstream returned any other non-200 status
        httpx.HTTPError: Network failure
    """
    host = api_host or settings.openai_api_host
    request = client.build_request(
        "POST",
        f"{host}{CHAT_COMPLETIONS_PATH}",
        headers=build_headers(key),
        json=build_chat_payload(model, system_prompt, temperature, messages),
    )
    response = await client.send(request, stream=True)

    if response.status_code != 200:
        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        finally:
            await response.aclose()
        raise error_from_response(response.status_code, response.reason_phrase, body)

    logger.debug(f"Upstream stream opened: model={model.id}, messages={len(messages)}")
    return ChatStream(response)


async def fetch_models(
    client: httpx.AsyncClient,
    key: str,
    api_host: Optional[str] = None,
) -> List[str]:
    """List model ids available upstream.

    Accepts both the OpenAI shape ({"data": [{"id": ...}, ...]}) and a bare list.

    Raises:
        UpstreamAuthError: Upstream returned 401 (body preserved)
        UpstreamError: Any other non-200 status, or an unexpected payload
        httpx.HTTPError: Network failure
        ValueError: Body is not JSON
    """
    host = api_host or settings.openai_api_host
    response = await client.get(f"{host}{MODELS_PATH}", headers=build_headers(key))

    if response.status_code == 401:
        raise UpstreamAuthError(
            "Upstream rejected the API key",
            upstream_status=401,
            body=response.text,
        )
    if response.status_code != 200:
        logger.error(f"API returned an error {response.status_code}: {response.text}")
        raise UpstreamError(
            "API returned an error",
            upstream_status=response.status_code,
            body=response.text,
        )

    payload = response.json()
    models_data = payload.get("data", payload) if isinstance(payload, dict) else payload
    if not isinstance(models_data, list):
        raise UpstreamError(
            "Unexpected models payload from upstream",
            upstream_status=response.status_code,
            body=response.text,
        )

    return [
        model["id"] for model in models_data
        if isinstance(model, dict) and isinstance(model.get("id"), str)
    ]

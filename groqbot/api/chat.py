"""Chat relay endpoint.

POST /api/chat trims the conversation to the model's token budget, forwards
it to the upstream chat completions API and streams the answer text back as
text/plain. One attempt per request; errors before the first byte become
HTTP errors, errors after it end the stream.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from groqbot.config import settings
from groqbot.dependencies import get_http_client, get_token_counter
from groqbot.exceptions import GroqBotError, MissingAPIKeyError
from groqbot.models import ChatBody, ErrorResponse
from groqbot.tokens import trim_messages
from groqbot.upstream import ChatStream, open_chat_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


async def relay_text(deltas: ChatStream, model_id: str) -> AsyncIterator[str]:
    """Forward upstream text deltas to the client.

    A failure mid-stream cannot change the status code any more, so it is
    logged and the stream simply ends. Client disconnects are re-raised.
    The route also closes deltas in a background task, which covers clients
    that disconnect before this generator starts.
    """
    chunks = 0
    try:
        async for text in deltas:
            chunks += 1
            yield text
    except asyncio.CancelledError:
        logger.info(f"Client disconnected: model={model_id}, chunks={chunks}")
        raise
    except Exception:
        logger.exception(f"Upstream stream failed: model={model_id}, chunks={chunks}")
    finally:
        await deltas.aclose()
        logger.debug(f"Stream closed: model={model_id}, chunks={chunks}")


@router.post(
    "/chat",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/plain": {}}, "description": "Streamed answer text"},
        401: {"model": ErrorResponse, "description": "No API key available"},
        500: {"model": ErrorResponse, "description": "Upstream or network failure"},
    },
)
async def chat(
    body: ChatBody,
    client: httpx.AsyncClient = Depends(get_http_client),
    count_tokens: Callable[[str], int] = Depends(get_token_counter),
):
    """Relay a chat request to the upstream provider and stream the answer.

    1. Resolves the key (body, then OPENAI_API_KEY), system prompt and temperature
    2. Drops the oldest messages until prompt + history + margin fits tokenLimit
    3. Opens the upstream stream and returns its text unmodified

    Raises:
        MissingAPIKeyError (401): No key in the body or environment
        UpstreamError (500): Upstream returned non-200, including an invalid key
        HTTPException 500: Network failure or any other error
    """
    try:
        key = body.key or settings.openai_api_key
        if not key:
            raise MissingAPIKeyError(
                "No API key provided. Set OPENAI_API_KEY or send a key with the request."
            )

        prompt = body.prompt or settings.default_system_prompt
        temperature = (
            settings.default_temperature if body.temperature is None else body.temperature
        )

        messages = trim_messages(
            body.messages, prompt, body.model.token_limit, count_tokens
        )
        if len(messages) < len(body.messages):
            logger.info(
                f"Trimmed history for {body.model.id}: "
                f"kept {len(messages)}/{len(body.messages)} messages "
                f"(tokenLimit={body.model.token_limit})"
            )

        deltas = await open_chat_stream(
            client, body.model, prompt, temperature, key, messages
        )
        logger.info(f"Streaming chat: model={body.model.id}, messages={len(messages)}")

        return StreamingResponse(
            relay_text(deltas, body.model.id),
            media_type="text/plain; charset=utf-8",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",  # Disable nginx buffering
            },
            background=BackgroundTask(deltas.aclose),
        )

    except GroqBotError as e:
        logger.error(f"❌ Chat relay error ({e.error_code.value}): {e.message}")
        raise
    except Exception as e:
        logger.error(f"❌ Error relaying chat: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error")

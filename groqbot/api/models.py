"""Model listing endpoint.

POST /api/models asks the upstream which models exist and offers the ones
the catalog knows. When the upstream call fails, or nothing usable comes
back, the static fallback list is returned with status 200.
"""

import logging
from typing import List

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from groqbot.catalog import OpenAIModel, fallback_models, select_available_models
from groqbot.config import settings
from groqbot.dependencies import get_http_client
from groqbot.exceptions import UpstreamAuthError
from groqbot.models import ModelsRequest
from groqbot.upstream import fetch_models

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["models"])


@router.post("/models", response_model=List[OpenAIModel])
async def list_models(
    request: ModelsRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """List models available to the caller's key.

    Returns:
        JSON array of {id, name, maxLength, tokenLimit}

    An upstream 401 is passed back as a 500 carrying the upstream body, so the
    client can tell a bad key apart from an outage.
    """
    key = request.key or settings.openai_api_key

    try:
        model_ids = await fetch_models(client, key)
    except UpstreamAuthError as e:
        logger.warning("Upstream rejected the API key while listing models")
        return Response(content=e.body, status_code=500, media_type="application/json")
    except Exception as e:
        logger.error(f"Models API error, serving fallback list: {e}", exc_info=True)
        return fallback_models()

    models = select_available_models(model_ids)
    if not models:
        logger.warning(
            f"No usable models among {len(model_ids)} upstream ids, serving fallback list"
        )
        return fallback_models()

    logger.info(f"Serving {len(models)} models")
    return models

"""Client bootstrap endpoint."""

from fastapi import APIRouter

from groqbot.config import settings
from groqbot.models import ClientConfig

router = APIRouter(prefix="/api", tags=["config"])


@router.get("/config", response_model=ClientConfig)
async def client_config():
    """Default model, system prompt and temperature, and whether the server holds a key."""
    return ClientConfig(
        default_model_id=settings.default_model,
        server_side_api_key_is_set=settings.server_side_api_key_is_set,
        default_system_prompt=settings.default_system_prompt,
        default_temperature=settings.default_temperature,
    )

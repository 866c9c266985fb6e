"""Pydantic models for API requests and responses."""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from groqbot import __version__
from groqbot.catalog import OpenAIModel, resolve_model


def _coerce_model(value: Any) -> Any:
    """Accept a bare model id wherever a full model object is expected."""
    if isinstance(value, str):
        return resolve_model(value)
    return value


# OpenAIModel that also accepts "llama-3.1-8b-instant" style ids
ModelField = Annotated[OpenAIModel, BeforeValidator(_coerce_model)]


class CamelModel(BaseModel):
    """Base for models exchanged with the browser client (camelCase JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(BaseModel):
    """Single chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatBody(BaseModel):
    """Request body for POST /api/chat.

    Attributes:
        model: Selected model (object or id); its token_limit bounds the history
        messages: Conversation so far, oldest first
        key: Client-supplied upstream API key; falls back to OPENAI_API_KEY
        prompt: System prompt; falls back to DEFAULT_SYSTEM_PROMPT
        temperature: Sampling temperature; falls back to DEFAULT_TEMPERATURE
    """

    model: ModelField
    messages: List[Message] = Field(default_factory=list)
    key: Optional[str] = ""
    prompt: Optional[str] = ""
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "model": {
                        "id": "llama-3.1-8b-instant",
                        "name": "Llama 3.1 8B (Fast)",
                        "maxLength": 120000,
                        "tokenLimit": 131072,
                    },
                    "messages": [{"role": "user", "content": "Hello!"}],
                    "key": "",
                    "prompt": "You are a helpful AI assistant.",
                    "temperature": 1.0,
                }
            ]
        }
    }


class ModelsRequest(BaseModel):
    """Request body for POST /api/models."""

    key: Optional[str] = ""


class ClientConfig(CamelModel):
    """Bootstrap values for the browser client.

    The server-side key itself is never exposed, only whether one is set.
    """

    default_model_id: str
    server_side_api_key_is_set: bool
    default_system_prompt: str
    default_temperature: float


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = __version__


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to clients."""

    MISSING_API_KEY = "MISSING_API_KEY"  # No key in request body or environment
    UPSTREAM_AUTH_ERROR = "UPSTREAM_AUTH_ERROR"  # Upstream rejected the key (401)
    UPSTREAM_ERROR = "UPSTREAM_ERROR"  # Upstream returned a non-200 status
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Error body: {'detail': '...', 'error_code': '...'}."""

    detail: str = Field(..., min_length=1)
    error_code: ErrorCode


# ============================================================================
# Conversation archive (browser export files)
# ============================================================================


class Conversation(CamelModel):
    """A saved conversation as stored by the browser client."""

    id: str
    name: str
    messages: List[Message] = Field(default_factory=list)
    model: ModelField
    prompt: str
    temperature: float
    folder_id: Optional[str] = None


class FolderInterface(BaseModel):
    """Folder grouping conversations or prompts."""

    id: str
    name: str
    type: Literal["chat", "prompt"]


class Prompt(CamelModel):
    """Saved prompt template."""

    id: str
    name: str
    description: str = ""
    content: str
    model: ModelField
    folder_id: Optional[str] = None


class ExportFormatV4(BaseModel):
    """Current export file format."""

    version: Literal[4] = 4
    history: List[Conversation] = Field(default_factory=list)
    folders: List[FolderInterface] = Field(default_factory=list)
    prompts: List[Prompt] = Field(default_factory=list)

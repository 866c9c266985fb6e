"""Model catalog for the upstream provider.

The catalog is the allow-list the relay knows token limits for. Models the
upstream reports that are not listed here can still be offered to the client
with conservative dynamic limits (see select_available_models).
"""

import re
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Limits used for models the upstream lists but the catalog does not know
DYNAMIC_MAX_LENGTH = 120000
DYNAMIC_TOKEN_LIMIT = 131072
MAX_DYNAMIC_MODELS = 5
DYNAMIC_MODEL_KEYWORDS = ("llama", "gemma", "compound", "gpt")


class OpenAIModel(BaseModel):
    """Model metadata as exchanged with the browser client.

    Attributes:
        id: Upstream model identifier (e.g., "llama-3.1-8b-instant")
        name: Human-readable label
        max_length: Maximum length of a single message, in characters
        token_limit: Context window, in model tokens

    Serialized with camelCase names (maxLength, tokenLimit).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    max_length: int
    token_limit: int


class OpenAIModelID(str, Enum):
    """Model identifiers with known limits."""

    GPT_3_5 = "gpt-3.5-turbo"
    GPT_4 = "gpt-4"
    LLAMA_3_1_8B = "llama-3.1-8b-instant"
    LLAMA_3_3_70B = "llama-3.3-70b-versatile"
    GEMMA2_9B = "gemma2-9b-it"
    COMPOUND_BETA = "compound-beta"


# Used when DEFAULT_MODEL is not set or names an unsupported model
FALLBACK_MODEL_ID = OpenAIModelID.LLAMA_3_1_8B

OPENAI_MODELS: dict[str, OpenAIModel] = {
    OpenAIModelID.GPT_3_5.value: OpenAIModel(
        id=OpenAIModelID.GPT_3_5.value,
        name="GPT-3.5",
        max_length=12000,
        token_limit=4000,
    ),
    OpenAIModelID.GPT_4.value: OpenAIModel(
        id=OpenAIModelID.GPT_4.value,
        name="GPT-4",
        max_length=24000,
        token_limit=8000,
    ),
    OpenAIModelID.LLAMA_3_1_8B.value: OpenAIModel(
        id=OpenAIModelID.LLAMA_3_1_8B.value,
        name="Llama 3.1 8B (Fast)",
        max_length=120000,
        token_limit=131072,
    ),
    OpenAIModelID.LLAMA_3_3_70B.value: OpenAIModel(
        id=OpenAIModelID.LLAMA_3_3_70B.value,
        name="Llama 3.3 70B (Powerful)",
        max_length=120000,
        token_limit=131072,
    ),
    OpenAIModelID.GEMMA2_9B.value: OpenAIModel(
        id=OpenAIModelID.GEMMA2_9B.value,
        name="Gemma 2 9B",
        max_length=24000,
        token_limit=8192,
    ),
    OpenAIModelID.COMPOUND_BETA.value: OpenAIModel(
        id=OpenAIModelID.COMPOUND_BETA.value,
        name="Compound Beta (Groq)",
        max_length=120000,
        token_limit=131072,
    ),
}

# Static list served by /api/models when the upstream cannot be reached
FALLBACK_MODELS: List[OpenAIModel] = [
    OpenAIModel(id="llama-3.1-8b-instant", name="Llama 3.1 8B (Fast)", max_length=120000, token_limit=131072),
    OpenAIModel(id="llama-3.3-70b-versatile", name="Llama 3.3 70B (Powerful)", max_length=120000, token_limit=131072),
    OpenAIModel(id="gemma2-9b-it", name="Gemma 2 9B", max_length=24000, token_limit=8192),
]


def is_supported_model(model_id: Optional[str]) -> bool:
    """Return True if model_id is a catalog entry."""
    return bool(model_id) and model_id in OPENAI_MODELS


def display_name(model_id: str) -> str:
    """Derive a label from a raw model id.

    Examples:
        >>> display_name("llama-guard-3-8b")
        'Llama Guard 3 8b'
        >>> display_name("gpt-4o")
        'Gpt 4o'
    """
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), model_id.replace("-", " "))


def resolve_model(model_id: str) -> OpenAIModel:
    """Look up a model by id, with dynamic limits for unknown ids."""
    known = OPENAI_MODELS.get(model_id)
    if known is not None:
        return known.model_copy()
    return OpenAIModel(
        id=model_id,
        name=model_id,
        max_length=DYNAMIC_MAX_LENGTH,
        token_limit=DYNAMIC_TOKEN_LIMIT,
    )


def fallback_models() -> List[OpenAIModel]:
    """Fresh copies of the static fallback list."""
    return [model.model_copy() for model in FALLBACK_MODELS]


def select_available_models(available_ids: Iterable[str]) -> List[OpenAIModel]:
    """Pick the models to offer given the ids the upstream reports.

    Catalog models present upstream are returned in catalog order. When none
    match, up to MAX_DYNAMIC_MODELS chat-capable ids (matched by keyword) are
    returned with dynamic limits. The result may be empty.
    """
    available = list(available_ids)
    available_set = set(available)

    models = [
        model.model_copy()
        for model_id, model in OPENAI_MODELS.items()
        if model_id in available_set
    ]
    if models:
        return models

    dynamic = [
        model_id for model_id in available
        if any(keyword in model_id for keyword in DYNAMIC_MODEL_KEYWORDS)
    ]
    return [
        OpenAIModel(
            id=model_id,
            name=display_name(model_id),
            max_length=DYNAMIC_MAX_LENGTH,
            token_limit=DYNAMIC_TOKEN_LIMIT,
        )
        for model_id in dynamic[:MAX_DYNAMIC_MODELS]
    ]

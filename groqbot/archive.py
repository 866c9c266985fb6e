"""Conversation export / import.

The browser client saves conversations, folders and prompts and can export
them as JSON. Older clients wrote earlier formats; clean_data() upgrades any
of them to the current one (version 4):

    v1: [conversation, ...]
    v2: {"history": [...], "folders": [{"id": 1, "name": "..."}]}
    v3: {"version": 3, "history": [...], "folders": [...]}
    v4: {"version": 4, "history": [...], "folders": [...], "prompts": [...]}
"""

import logging
from datetime import date
from typing import Any, Iterable, List, Optional, TypeVar

from groqbot.catalog import OPENAI_MODELS, OpenAIModelID
from groqbot.config import settings
from groqbot.exceptions import UnsupportedExportFormat
from groqbot.models import (
    Conversation,
    ExportFormatV4,
    FolderInterface,
    Prompt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", Conversation, FolderInterface, Prompt)


def clean_conversation(conversation: dict) -> Conversation:
    """Fill in fields that older clients did not store.

    - model: GPT-3.5 catalog entry
    - prompt: DEFAULT_SYSTEM_PROMPT
    - temperature: DEFAULT_TEMPERATURE (0 is kept)
    - folderId: legacy "folder" field, else None
    - messages: []

    Raises:
        TypeError, ValueError: If the entry cannot be turned into a Conversation
    """
    updated = dict(conversation)

    if not updated.get("model"):
        updated["model"] = OPENAI_MODELS[OpenAIModelID.GPT_3_5.value].model_dump(by_alias=True)
    if not updated.get("prompt"):
        updated["prompt"] = settings.default_system_prompt
    if updated.get("temperature") is None:
        updated["temperature"] = settings.default_temperature
    if not updated.get("folderId"):
        updated["folderId"] = updated.get("folder") or None
    if updated["folderId"] is not None:
        # v2 clients stored numeric folder ids
        updated["folderId"] = str(updated["folderId"])
    if not updated.get("messages"):
        updated["messages"] = []

    return Conversation.model_validate(updated)


def clean_conversation_history(history: Any) -> List[Conversation]:
    """Clean every conversation, dropping the ones that cannot be repaired."""
    if not isinstance(history, list):
        logger.warning("history is not an array. Returning an empty array.")
        return []

    cleaned = []
    for conversation in history:
        try:
            cleaned.append(clean_conversation(conversation))
        except (TypeError, ValueError) as e:
            logger.warning(f"Error while cleaning conversation history, removing culprit: {e}")
    return cleaned


def is_export_format_v1(data: Any) -> bool:
    return isinstance(data, list)


def is_export_format_v2(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and "version" not in data
        and "folders" in data
        and "history" in data
    )


def is_export_format_v3(data: Any) -> bool:
    return isinstance(data, dict) and data.get("version") == 3


def is_export_format_v4(data: Any) -> bool:
    return isinstance(data, dict) and data.get("version") == 4


def clean_data(data: Any) -> ExportFormatV4:
    """Upgrade export data of any known version to version 4.

    Raises:
        UnsupportedExportFormat: If data matches no known format
        pydantic.ValidationError: If v3/v4 data does not fit the schema
    """
    if is_export_format_v1(data):
        return ExportFormatV4(history=clean_conversation_history(data))

    if is_export_format_v2(data):
        folders = [
            FolderInterface(id=str(folder["id"]), name=folder["name"], type="chat")
            for folder in data.get("folders") or []
        ]
        return ExportFormatV4(
            history=clean_conversation_history(data.get("history") or []),
            folders=folders,
        )

    if is_export_format_v3(data):
        return ExportFormatV4.model_validate({**data, "version": 4, "prompts": []})

    if is_export_format_v4(data):
        return ExportFormatV4.model_validate(data)

    raise UnsupportedExportFormat("Unsupported data format")


def export_filename(today: Optional[date] = None) -> str:
    """Name for an export file, e.g. chatbot_ui_history_6-21.json."""
    today = today or date.today()
    return f"chatbot_ui_history_{today.month}-{today.day}.json"


def export_data(
    history: Iterable[Conversation],
    folders: Iterable[FolderInterface] = (),
    prompts: Iterable[Prompt] = (),
) -> ExportFormatV4:
    """Build a version 4 export document."""
    return ExportFormatV4(
        history=list(history),
        folders=list(folders),
        prompts=list(prompts),
    )


def _merge_by_id(existing: List[T], incoming: List[T]) -> List[T]:
    """Concatenate, keeping the first item for each id."""
    merged: List[T] = []
    seen: set[str] = set()
    for item in [*existing, *incoming]:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return merged


def import_data(data: Any, current: Optional[ExportFormatV4] = None) -> ExportFormatV4:
    """Upgrade data to version 4 and merge it into current.

    Items already present in current win over imported items with the same id.

    Raises:
        UnsupportedExportFormat: If data matches no known format
    """
    cleaned = clean_data(data)
    if current is None:
        return cleaned

    return ExportFormatV4(
        history=_merge_by_id(current.history, cleaned.history),
        folders=_merge_by_id(current.folders, cleaned.folders),
        prompts=_merge_by_id(current.prompts, cleaned.prompts),
    )

"""Versioned export/import envelope and namespace persistence of workspace state."""

import json
from dataclasses import dataclass, field
from typing import Any

import pydantic
import structlog

from doc_truyen.errors import ValidationError
from doc_truyen.models import ProcessedFile, ReaderSettings, VocabularyItem, WorkspaceItem
from doc_truyen.storage.cache import AnalysisCache, TranslationCache
from doc_truyen.storage.store import JsonFileStore

logger = structlog.get_logger()

BACKUP_VERSION = 1


@dataclass
class WorkspaceState:
    """Everything that survives a session."""

    settings: ReaderSettings = field(default_factory=ReaderSettings)
    vocabulary: list[VocabularyItem] = field(default_factory=list)
    analysis_cache: AnalysisCache = field(default_factory=AnalysisCache)
    translation_cache: TranslationCache = field(default_factory=TranslationCache)
    workspace_items: list[WorkspaceItem] = field(default_factory=list)
    files: dict[str, ProcessedFile] = field(default_factory=dict)


def pack(state: WorkspaceState) -> dict[str, Any]:
    """Build the export envelope."""
    return {
        "version": BACKUP_VERSION,
        "data": {
            "settings": state.settings.to_json_dict(),
            "vocabulary": [item.to_json_dict() for item in state.vocabulary],
            "analysisCache": state.analysis_cache.to_pairs(),
            "translationCache": state.translation_cache.to_pairs(),
            "workspaceItems": [item.to_json_dict() for item in state.workspace_items],
            "filesCache": [[file_id, f.to_json_dict()] for file_id, f in state.files.items()],
        },
    }


def unpack(envelope: Any) -> WorkspaceState:
    """Rebuild state from an export envelope.

    Raises:
        ValidationError: If the envelope is malformed or from an unknown version.
    """
    if not isinstance(envelope, dict) or not isinstance(envelope.get("data"), dict):
        raise ValidationError("Invalid backup: missing 'data' object")
    version = envelope.get("version")
    if version != BACKUP_VERSION:
        raise ValidationError(f"Unsupported backup version: {version}")

    data = envelope["data"]
    try:
        return WorkspaceState(
            settings=ReaderSettings.model_validate(data.get("settings") or {}),
            vocabulary=[VocabularyItem.model_validate(v) for v in data.get("vocabulary") or []],
            analysis_cache=AnalysisCache.from_pairs(data.get("analysisCache")),
            translation_cache=TranslationCache.from_pairs(data.get("translationCache")),
            workspace_items=[
                WorkspaceItem.model_validate(w) for w in data.get("workspaceItems") or []
            ],
            files={
                file_id: ProcessedFile.model_validate(raw)
                for file_id, raw in data.get("filesCache") or []
            },
        )
    except (pydantic.ValidationError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid backup content: {e}") from e


def dumps(state: WorkspaceState) -> str:
    return json.dumps(pack(state), ensure_ascii=False, indent=2)


def loads(text: str) -> WorkspaceState:
    try:
        envelope = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Backup is not valid JSON: {e}") from e
    return unpack(envelope)


def save_state(store: JsonFileStore, state: WorkspaceState) -> None:
    """Persist each part of the state under its own namespace."""
    data = pack(state)["data"]
    store.set("settings", data["settings"])
    store.set("vocabulary", data["vocabulary"])
    store.set("analysis_cache", data["analysisCache"])
    store.set("translation_cache", data["translationCache"])
    store.set("workspace_items", data["workspaceItems"])
    store.set("files_cache", data["filesCache"])
    logger.debug("state_saved", path=str(store.data_dir), files=len(state.files))


def load_state(store: JsonFileStore) -> WorkspaceState:
    """Load persisted state; absent namespaces start empty.

    State that no longer validates is discarded with a warning rather than
    blocking startup.
    """
    envelope = {
        "version": BACKUP_VERSION,
        "data": {
            "settings": store.get("settings"),
            "vocabulary": store.get("vocabulary"),
            "analysisCache": store.get("analysis_cache"),
            "translationCache": store.get("translation_cache"),
            "workspaceItems": store.get("workspace_items"),
            "filesCache": store.get("files_cache"),
        },
    }
    try:
        return unpack(envelope)
    except ValidationError as e:
        logger.warning("state_load_failed", path=str(store.data_dir), error=str(e))
        return WorkspaceState()

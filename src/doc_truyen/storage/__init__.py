"""Caches, durable storage and backup envelopes."""

from doc_truyen.storage.backup import WorkspaceState, pack, unpack
from doc_truyen.storage.cache import AnalysisCache, ResultCache, TranslationCache
from doc_truyen.storage.store import JsonFileStore

__all__ = [
    "AnalysisCache",
    "JsonFileStore",
    "ResultCache",
    "TranslationCache",
    "WorkspaceState",
    "pack",
    "unpack",
]

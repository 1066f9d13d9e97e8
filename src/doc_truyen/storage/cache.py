"""Analysis and translation result caches."""

from typing import Any, Generic, Iterator, Optional, TypeVar

from doc_truyen.models import AnalyzedText

V = TypeVar("V")


class ResultCache(Generic[V]):
    """Key → result mapping with no eviction.

    Entries are added only after a successful remote call and removed only by
    explicit deletion or clear(). Insertion order is kept so the persisted
    pair list round-trips exactly.
    """

    def __init__(self, entries: Optional[dict[str, V]] = None):
        self._entries: dict[str, V] = dict(entries or {})

    def get(self, key: str) -> Optional[V]:
        return self._entries.get(key)

    def set(self, key: str, value: V) -> None:
        self._entries[key] = value

    def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultCache):
            return NotImplemented
        return list(self._entries.items()) == list(other._entries.items())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _dump_value(self, value: V) -> Any:
        return value

    def _load_value(self, raw: Any) -> V:
        return raw

    def to_pairs(self) -> list[list[Any]]:
        """Serialize as [[key, value], ...] in insertion order."""
        return [[key, self._dump_value(value)] for key, value in self._entries.items()]

    @classmethod
    def from_pairs(cls, pairs: Optional[list[list[Any]]]) -> "ResultCache[V]":
        cache = cls()
        for key, raw in pairs or []:
            cache.set(key, cache._load_value(raw))
        return cache


class AnalysisCache(ResultCache[AnalyzedText]):
    """Exact sentence text → analysis result."""

    def _dump_value(self, value: AnalyzedText) -> Any:
        return value.to_json_dict()

    def _load_value(self, raw: Any) -> AnalyzedText:
        return AnalyzedText.model_validate(raw)


class TranslationCache(ResultCache[str]):
    """Sentence text (batch mode) or chapter key → translation."""


def chapter_translation_key(file_id: str, chapter_index: int, title: str) -> str:
    """Composite cache key for a whole-chapter translation."""
    return f"{file_id}-{chapter_index}-{title}"

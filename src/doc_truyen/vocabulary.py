"""Personal vocabulary built from special terms surfaced by analysis."""

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, TextIO

import structlog

from doc_truyen.errors import ValidationError
from doc_truyen.models import ProcessedFile, SpecialTerm, VocabularyItem, VocabularyLocation

logger = structlog.get_logger()

CSV_FIELDS = [
    "term",
    "sino_vietnamese",
    "vietnamese_translation",
    "category",
    "explanation",
    "is_force_sino",
    "chapter_index",
    "chapter_title",
    "sentence_number",
    "original_sentence",
]

# Fields a user may edit; term and first_location are fixed once recorded
EDITABLE_FIELDS = {"sino_vietnamese", "vietnamese_translation", "category", "explanation", "is_force_sino"}


@dataclass
class SentencePatch:
    """Field changes for one sentence of an open file."""

    file_id: str
    chapter_index: int
    sentence_index: int
    update: dict[str, Any]


class VocabularyStore:
    """Deduplicated vocabulary keyed by exact (case-sensitive) term."""

    def __init__(self, items: Optional[list[VocabularyItem]] = None):
        self.items: list[VocabularyItem] = []
        self._index: dict[str, int] = {}
        for item in items or []:
            self.add_item(item)

    def _rebuild_index(self) -> None:
        self._index = {item.term: i for i, item in enumerate(self.items)}

    def add_item(self, item: VocabularyItem) -> bool:
        """Insert an item unless its term already exists.

        Returns:
            True if the item was added
        """
        if item.term in self._index:
            return False
        self._index[item.term] = len(self.items)
        self.items.append(item)
        return True

    def record(
        self, terms: Iterable[SpecialTerm], location: VocabularyLocation
    ) -> list[VocabularyItem]:
        """Save new special terms with the location they were first seen.

        Terms already in the store are left untouched, so the first location
        always wins.

        Returns:
            The newly added items
        """
        added: list[VocabularyItem] = []
        for term in terms:
            if not term.term or term.term in self._index:
                continue
            item = VocabularyItem(
                **term.model_dump(),
                first_location=location,
                is_force_sino=False,
            )
            self.add_item(item)
            added.append(item)
        if added:
            logger.debug("vocabulary_recorded", added=len(added), total=len(self.items))
        return added

    def lookup(self, term: str) -> Optional[VocabularyItem]:
        idx = self._index.get(term)
        return self.items[idx] if idx is not None else None

    def _require(self, term: str) -> int:
        idx = self._index.get(term)
        if idx is None:
            raise ValidationError(f"Term not found: {term}")
        return idx

    def toggle_force_sino(self, term: str) -> VocabularyItem:
        idx = self._require(term)
        item = self.items[idx]
        self.items[idx] = item.model_copy(update={"is_force_sino": not item.is_force_sino})
        return self.items[idx]

    def update(self, term: str, patch: dict[str, Any]) -> VocabularyItem:
        """Apply a partial edit to one item.

        Raises:
            ValidationError: If the term is unknown or the patch touches a fixed field
        """
        idx = self._require(term)
        fixed = set(patch) - EDITABLE_FIELDS
        if fixed:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(fixed))}")
        merged = {**self.items[idx].model_dump(), **patch}
        self.items[idx] = VocabularyItem.model_validate(merged)
        return self.items[idx]

    def delete(self, term: str) -> bool:
        """Remove an item. Returns True if it existed."""
        if term not in self._index:
            return False
        self.items = [item for item in self.items if item.term != term]
        self._rebuild_index()
        return True

    def forced_sino_terms(self) -> list[dict[str, str]]:
        """Hints for the analysis service: terms that must keep their Hán Việt reading."""
        return [
            {"term": item.term, "sinoVietnamese": item.sino_vietnamese}
            for item in self.items
            if item.is_force_sino
        ]

    # ------------------------------------------------------------------
    # Unify
    # ------------------------------------------------------------------

    def _unify_rules(self) -> list[tuple[re.Pattern[str], str]]:
        rules = []
        for item in self.items:
            translation = (item.vietnamese_translation or "").strip()
            if not item.is_force_sino or not translation or not item.sino_vietnamese:
                continue
            # Existing Hán Việt occurrences match first and are kept, so a
            # reading that contains the translation is not rewritten twice
            pattern = re.compile(
                f"(?P<keep>{re.escape(item.sino_vietnamese)})|{re.escape(translation)}",
                re.IGNORECASE,
            )
            rules.append((pattern, item.sino_vietnamese))
        return rules

    @staticmethod
    def _apply_rules(text: str, rules: list[tuple[re.Pattern[str], str]]) -> str:
        for pattern, sino in rules:
            text = pattern.sub(lambda m: m.group(0) if m.group("keep") else sino, text)
        return text

    def unify(self, files: Iterable[ProcessedFile]) -> list[SentencePatch]:
        """Compute rewrites of force-Sino translations to their Hán Việt reading.

        Covers every sentence translation (batch and analysis) of every file
        given. The files are not modified; the caller applies the patches.
        Applying them and running again yields no patches.
        """
        rules = self._unify_rules()
        if not rules:
            return []

        patches: list[SentencePatch] = []
        for file in files:
            for chapter_index, chapter in enumerate(file.chapters):
                for sentence_index, sentence in enumerate(chapter.sentences):
                    update: dict[str, Any] = {}
                    if sentence.translation:
                        new_text = self._apply_rules(sentence.translation, rules)
                        if new_text != sentence.translation:
                            update["translation"] = new_text
                    result = sentence.analysis_result
                    if result and result.translation:
                        new_text = self._apply_rules(result.translation, rules)
                        if new_text != result.translation:
                            update["analysis_result"] = result.model_copy(
                                update={"translation": new_text}
                            )
                    if update:
                        patches.append(
                            SentencePatch(file.id, chapter_index, sentence_index, update)
                        )

        logger.info("vocabulary_unified", rules=len(rules), sentences=len(patches))
        return patches

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_list(self) -> list[dict[str, Any]]:
        return [item.to_json_dict() for item in self.items]

    @classmethod
    def from_list(cls, data: Optional[list[dict[str, Any]]]) -> "VocabularyStore":
        return cls([VocabularyItem.model_validate(d) for d in data or []])

    def write_csv(self, stream: TextIO) -> None:
        """Write vocabulary as CSV rows to an open text stream."""
        writer = csv.DictWriter(stream, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for item in self.items:
            loc = item.first_location
            writer.writerow(
                {
                    "term": item.term,
                    "sino_vietnamese": item.sino_vietnamese,
                    "vietnamese_translation": item.vietnamese_translation or "",
                    "category": item.category,
                    "explanation": item.explanation,
                    "is_force_sino": "1" if item.is_force_sino else "0",
                    "chapter_index": loc.chapter_index,
                    "chapter_title": loc.chapter_title,
                    "sentence_number": loc.sentence_number,
                    "original_sentence": loc.original_sentence,
                }
            )

    @classmethod
    def read_csv(cls, stream: TextIO) -> "VocabularyStore":
        """Read rows written by write_csv(). Rows without a term are skipped.

        Raises:
            ValidationError: If the text cannot be decoded or a row is malformed
        """
        items = []
        reader = csv.DictReader(stream)
        try:
            for row in reader:
                if not row.get("term"):
                    continue
                items.append(
                    VocabularyItem(
                        term=row["term"],
                        sino_vietnamese=row.get("sino_vietnamese") or "",
                        vietnamese_translation=row.get("vietnamese_translation") or None,
                        category=row.get("category") or "",
                        explanation=row.get("explanation") or "",
                        is_force_sino=row.get("is_force_sino") == "1",
                        first_location=VocabularyLocation(
                            chapter_index=int(row.get("chapter_index") or 0),
                            chapter_title=row.get("chapter_title") or "",
                            sentence_number=int(row.get("sentence_number") or 0),
                            original_sentence=row.get("original_sentence") or "",
                        ),
                    )
                )
        # pydantic.ValidationError and UnicodeDecodeError are ValueErrors
        except (ValueError, csv.Error) as e:
            raise ValidationError(f"Invalid vocabulary CSV at line {reader.line_num}: {e}") from e
        return cls(items)

    def to_csv(self, path: Path) -> None:
        """Export vocabulary to a CSV file."""
        with open(Path(path), "w", encoding="utf-8", newline="") as f:
            self.write_csv(f)

    @classmethod
    def from_csv(cls, path: Path) -> "VocabularyStore":
        """Import vocabulary from a CSV file written by to_csv()."""
        with open(Path(path), "r", encoding="utf-8-sig", newline="") as f:
            store = cls.read_csv(f)
        logger.info("vocabulary_imported", entries=len(store), path=str(path))
        return store

    def merge(self, other: "VocabularyStore") -> int:
        """Add items from another store that are not present yet."""
        return sum(1 for item in other.items if self.add_item(item))

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, term: str) -> bool:
        return term in self._index

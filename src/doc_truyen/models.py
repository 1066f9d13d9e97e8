"""Chapter/sentence tree, analysis results and vocabulary models."""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from doc_truyen.text.numerals import format_chapter_number


class CamelModel(BaseModel):
    """Base model whose JSON form uses camelCase keys.

    The analysis service answers in camelCase and the backup envelope keeps
    the same key style, so every persisted model derives from this.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AnalysisState(str, Enum):
    """Processing state of a sentence (analysis and translation each have one)."""

    PENDING = "pending"
    LOADING = "loading"
    DONE = "done"
    ERROR = "error"


class DisplayMode(str, Enum):
    """How an analysed sentence is rendered."""

    TRANSLATION = "translation"
    GRAMMAR = "grammar"
    DETAILED_WORD = "detailed-word"
    ORIGINAL = "original"


_DISPLAY_ROTATION = [
    DisplayMode.TRANSLATION,
    DisplayMode.GRAMMAR,
    DisplayMode.DETAILED_WORD,
    DisplayMode.ORIGINAL,
]


def next_display_mode(current: Optional[DisplayMode]) -> DisplayMode:
    """Next mode in the translation → grammar → detailed-word → original cycle."""
    if current is None:
        return DisplayMode.TRANSLATION
    idx = _DISPLAY_ROTATION.index(current)
    return _DISPLAY_ROTATION[(idx + 1) % len(_DISPLAY_ROTATION)]


class GrammarRole(str, Enum):
    """Grammatical function of a token."""

    SUBJECT = "Subject"
    PREDICATE = "Predicate"
    OBJECT = "Object"
    ADVERBIAL = "Adverbial"
    COMPLEMENT = "Complement"
    ATTRIBUTE = "Attribute"
    PARTICLE = "Particle"
    INTERJECTION = "Interjection"
    CONJUNCTION = "Conjunction"
    NUMERAL = "Numeral"
    MEASURE_WORD = "Measure Word"
    UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------


class Token(CamelModel):
    """One word or character of an analysed sentence."""

    character: str
    pinyin: str = ""
    sino_vietnamese: str = ""
    vietnamese_meaning: str = ""
    grammar_role: GrammarRole = GrammarRole.UNKNOWN
    grammar_explanation: str = ""

    @field_validator("grammar_role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Any:
        if isinstance(value, GrammarRole):
            return value
        try:
            return GrammarRole(value)
        except ValueError:
            return GrammarRole.UNKNOWN


class SpecialTerm(CamelModel):
    """Proper noun, idiom or other glossary-worthy expression found by analysis."""

    term: str
    sino_vietnamese: str = ""
    category: str = ""
    explanation: str = ""
    vietnamese_translation: Optional[str] = None


class AnalyzedText(CamelModel):
    """Full analysis of one sentence. Immutable once attached to a sentence."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    tokens: list[Token] = Field(default_factory=list)
    translation: str = ""
    special_terms: list[SpecialTerm] = Field(default_factory=list)
    sentence_grammar_explanation: str = ""


# ---------------------------------------------------------------------------
# Chapter / sentence tree
# ---------------------------------------------------------------------------


class Sentence(CamelModel):
    """A sentence line with independent analysis and translation states."""

    original: str
    sentence_number: int = Field(description="0 for the title sentence, 1..N for body")
    is_title: bool = False
    analysis_state: AnalysisState = AnalysisState.PENDING
    analysis_result: Optional[AnalyzedText] = None
    analysis_error: Optional[str] = None
    translation_state: AnalysisState = AnalysisState.PENDING
    translation: Optional[str] = None
    translation_error: Optional[str] = None
    display_mode: Optional[DisplayMode] = None


class Chapter(CamelModel):
    """A chapter, or one part of a chapter that was split for length."""

    title: str
    chapter_number: Optional[str] = Field(default=None, description="Raw numeral text")
    part_number: int = 1
    total_parts: int = 1
    sentences: list[Sentence] = Field(default_factory=list)
    is_expanded: bool = False
    is_batch_translating: bool = False
    batch_translation_progress: float = 0.0
    is_batch_analyzing: bool = False
    batch_analysis_progress: float = 0.0

    @property
    def display_number(self) -> Optional[str]:
        """Chapter number normalised for display ("三十一" → "31")."""
        if self.chapter_number is None:
            return None
        return format_chapter_number(self.chapter_number)

    def body_sentences(self) -> list[tuple[int, Sentence]]:
        """(index, sentence) pairs for every non-title sentence."""
        return [(i, s) for i, s in enumerate(self.sentences) if not s.is_title]


# Chapters per page in the reader; the first page is shown when a file opens
DEFAULT_PAGE_SIZE = 10
PAGE_SIZE_OPTIONS = (10, 25, 50, 100)


class ChapterRange(CamelModel):
    """Inclusive, zero-based range of chapter indices shown in the reader."""

    start: int = Field(default=0, ge=0)
    end: int = Field(default=0, ge=0)

    @classmethod
    def first_page(cls, chapter_count: int, page_size: int) -> "ChapterRange":
        return cls(start=0, end=max(0, min(page_size, chapter_count) - 1))


class ProcessedFile(CamelModel):
    """An ingested document: its chapter tree plus the raw text it came from."""

    id: str
    file_name: str
    chapters: list[Chapter] = Field(default_factory=list)
    original_content: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    visible_range: ChapterRange = Field(default_factory=ChapterRange)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.chapters) / self.page_size))

    def visible_chapters(self) -> list[tuple[int, Chapter]]:
        """(index, chapter) pairs inside the visible range."""
        last = min(self.visible_range.end, len(self.chapters) - 1)
        return [(i, self.chapters[i]) for i in range(self.visible_range.start, last + 1)]


class WorkspaceItem(CamelModel):
    """Workspace tab metadata for an open file."""

    id: str
    file_name: str
    chapter_count: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_file(cls, file: ProcessedFile) -> "WorkspaceItem":
        return cls(
            id=file.id,
            file_name=file.file_name,
            chapter_count=len(file.chapters),
            created_at=file.created_at,
        )


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------


class VocabularyLocation(CamelModel):
    """Where a vocabulary term was first seen."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    chapter_index: int
    chapter_title: str
    sentence_number: int
    original_sentence: str


class VocabularyItem(SpecialTerm):
    """A special term saved to the personal vocabulary."""

    first_location: VocabularyLocation
    is_force_sino: bool = False


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class ReaderSettings(CamelModel):
    """User-facing reader preferences persisted with the workspace."""

    theme: Literal["light", "dark", "sepia"] = "light"
    font_size: int = 18
    font_family: Literal["font-sans", "font-serif", "font-mono"] = "font-sans"
    api_key: str = Field(default="", description="Overrides OPENAI_API_KEY when set")
    default_display_mode: DisplayMode = DisplayMode.TRANSLATION

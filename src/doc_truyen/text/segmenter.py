"""Chapter detection and splitting of raw documents."""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from doc_truyen.config import SegmenterConfig, get_config
from doc_truyen.errors import ValidationError
from doc_truyen.models import Chapter
from doc_truyen.text.numerals import NUMERAL_CHARS
from doc_truyen.text.tokenizer import make_title_sentence, tokenize

logger = structlog.get_logger()

# Boundaries a long chapter may be cut after, in no particular priority
SPLIT_BOUNDARIES = ("\n", "。", "！", "？")

# Horizontal whitespace only; a heading never spans lines
_HS = r"[^\S\n]*"


def build_heading_regex(keywords: list[str], suffixes: list[str]) -> re.Pattern[str]:
    """Compile the line-anchored chapter heading pattern.

    A heading is a keyword, a numeral (arabic or Chinese) captured as group 1,
    then either a counter suffix with an optional title, a colon with an
    optional title, or end of line.
    """
    if not keywords:
        raise ValidationError("At least one chapter heading keyword is required")
    # Longest first so "卷之" wins over "卷"
    kw = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    sfx = "|".join(re.escape(s) for s in sorted(suffixes, key=len, reverse=True))
    suffix_branch = f"(?:{sfx}){_HS}.*|" if sfx else ""
    pattern = (
        rf"^(?:{kw}){_HS}(\d+|[{NUMERAL_CHARS}]+){_HS}"
        rf"(?:{suffix_branch}[:：]{_HS}.*|$)"
    )
    return re.compile(pattern, re.MULTILINE)


@dataclass
class ChapterSpan:
    """A chapter located in the raw text, before splitting."""

    title: str
    content: str
    chapter_number: Optional[str] = None


class ChapterSegmenter:
    """Turn raw text into chapters, split oversized chapters into parts."""

    def __init__(self, config: Optional[SegmenterConfig] = None):
        self.config = config or get_config().segmenter
        self.heading_re = build_heading_regex(
            self.config.heading_keywords, self.config.heading_suffixes
        )

    def find_spans(self, text: str) -> list[ChapterSpan]:
        """Locate chapter spans in document order."""
        matches = list(self.heading_re.finditer(text))

        if not matches:
            body = text.strip()
            return [ChapterSpan(self.config.default_title, body)] if body else []

        spans: list[ChapterSpan] = []
        preface = text[: matches[0].start()].strip()
        if preface:
            spans.append(ChapterSpan(self.config.preface_title, preface))

        for i, match in enumerate(matches):
            title = re.sub(r"\s+", " ", match.group(0).strip())
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            content = text[match.end() : end].strip()
            # Back-to-back headings produce no chapter
            if content:
                spans.append(ChapterSpan(title, content, match.group(1)))

        return spans

    def split_large_chapter(self, title: str, content: str) -> list[tuple[str, str]]:
        """Split content longer than max_chapter_length into titled parts.

        Returns:
            (part title, part content) pairs; the first keeps the plain title,
            later ones are suffixed "(Part n)".
        """
        max_length = self.config.max_chapter_length
        if len(content) <= max_length:
            return [(title, content)]

        pieces: list[str] = []
        remaining = content
        while remaining:
            if len(remaining) <= max_length * self.config.last_part_tolerance:
                piece, remaining = remaining, ""
            else:
                cut = self._find_cut(remaining, max_length)
                piece, remaining = remaining[:cut], remaining[cut:]
            piece = piece.strip()
            if piece:
                pieces.append(piece)

        label = self.config.part_label
        return [
            (title if n == 1 else f"{title} ({label} {n})", piece)
            for n, piece in enumerate(pieces, start=1)
        ]

    @staticmethod
    def _find_cut(text: str, max_length: int) -> int:
        """Index just past the boundary where the next part should end."""
        split_at = max(text.rfind(b, 0, max_length + 1) for b in SPLIT_BOUNDARIES)
        if split_at >= max_length / 2:
            return split_at + 1
        space = text.rfind(" ", 0, max_length + 1)
        if space > 0:
            return space + 1
        # Always advance so the split loop terminates
        return max(1, max_length)

    def build_chapters(self, span: ChapterSpan) -> list[Chapter]:
        parts = self.split_large_chapter(span.title, span.content)
        return [
            Chapter(
                title=part_title,
                chapter_number=span.chapter_number,
                part_number=n,
                total_parts=len(parts),
                sentences=[make_title_sentence(part_title), *tokenize(part_content)],
            )
            for n, (part_title, part_content) in enumerate(parts, start=1)
        ]

    def segment(self, text: str) -> list[Chapter]:
        """Segment a document into chapters with tokenized sentences.

        Raises:
            ValidationError: If processing fails; no partial result is returned.
        """
        try:
            chapters: list[Chapter] = []
            for span in self.find_spans(text):
                chapters.extend(self.build_chapters(span))
        except ValidationError:
            raise
        except Exception as e:
            logger.error("segment_failed", error=str(e))
            raise ValidationError(f"Text processing error: {e}") from e

        logger.debug("document_segmented", chapters=len(chapters), length=len(text))
        return chapters


def segment(text: str, config: Optional[SegmenterConfig] = None) -> list[Chapter]:
    """Segment text with the given (or global) segmenter configuration."""
    return ChapterSegmenter(config).segment(text)

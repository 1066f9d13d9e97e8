"""Split chapter content into numbered sentence lines."""

import re

from doc_truyen.models import Sentence

# Lines made only of quotes, ellipses, terminal punctuation and whitespace
PUNCTUATION_ONLY_RE = re.compile(r"^[“”‘’「」『』…\"'.!?,;:。！？，、；：·—\-\s]+$")


def is_punctuation_only(line: str) -> bool:
    return bool(PUNCTUATION_ONLY_RE.match(line))


def tokenize(content: str) -> list[Sentence]:
    """Split content on newlines into body sentences.

    Lines are trimmed; blank and punctuation-only lines are dropped. Surviving
    lines are numbered from 1 in order of appearance, so numbering restarts
    with every call (i.e. per chapter part).
    """
    sentences: list[Sentence] = []
    for line in content.split("\n"):
        text = line.strip()
        if not text or is_punctuation_only(text):
            continue
        sentences.append(Sentence(original=text, sentence_number=len(sentences) + 1))
    return sentences


def make_title_sentence(title: str) -> Sentence:
    """Synthetic sentence 0 carrying the chapter title."""
    return Sentence(original=title, sentence_number=0, is_title=True)

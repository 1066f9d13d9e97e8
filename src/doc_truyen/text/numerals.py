"""Chinese numeral parsing for chapter numbers."""

import re
from typing import Optional

_DIGITS = {
    "零": 0, "〇": 0, "○": 0,
    "一": 1, "壹": 1,
    "二": 2, "两": 2, "貳": 2, "贰": 2,
    "三": 3, "叁": 3, "參": 3,
    "四": 4, "肆": 4,
    "五": 5, "伍": 5,
    "六": 6, "陆": 6, "陸": 6,
    "七": 7, "柒": 7,
    "八": 8, "捌": 8,
    "九": 9, "玖": 9,
}

# Multiply the current digit within a section
_SECTION_UNITS = {"十": 10, "拾": 10, "百": 100, "佰": 100, "千": 1000, "仟": 1000}

# Close the current section and scale it
_SECTION_MULTIPLIERS = {"万": 10_000, "萬": 10_000, "亿": 100_000_000, "億": 100_000_000}

# Characters accepted in a heading numeral (used by the segmenter regex)
NUMERAL_CHARS = "".join([*_DIGITS, *_SECTION_UNITS, *_SECTION_MULTIPLIERS])

_ARABIC_RE = re.compile(r"^\d+$")


def to_integer(text: str) -> Optional[int]:
    """Convert an arabic or Chinese numeral string to an int.

    Examples:
        "2" -> 2
        "十二" -> 12
        "三十一" -> 31
        "一百零五" -> 105
        "卷十" -> 10 (non-numeral characters are skipped)
        "" -> None

    Returns:
        The integer value, or None if the text is empty or carries no numeral.
    """
    text = text.strip()
    if not text:
        return None

    if _ARABIC_RE.match(text):
        # \d and int() both accept full-width digits
        return int(text)

    total = 0
    section = 0
    digit = 0
    seen_numeral = False

    for ch in text:
        if ch in _DIGITS:
            digit = _DIGITS[ch]
            seen_numeral = True
        elif ch in _SECTION_UNITS:
            # "十二": a bare leading unit means one of that unit
            section += (digit or 1) * _SECTION_UNITS[ch]
            digit = 0
            seen_numeral = True
        elif ch in _SECTION_MULTIPLIERS:
            total += (section + digit) * _SECTION_MULTIPLIERS[ch]
            section = 0
            digit = 0
            seen_numeral = True

    result = total + section + digit
    if result == 0 and not seen_numeral:
        return None
    return result


def format_chapter_number(raw: str) -> str:
    """Render a heading numeral as arabic digits when it can be parsed."""
    value = to_integer(raw)
    return str(value) if value is not None else raw

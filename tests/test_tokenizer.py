"""Tests for sentence tokenization."""

from doc_truyen.models import AnalysisState
from doc_truyen.text.tokenizer import is_punctuation_only, make_title_sentence, tokenize


def test_tokenize_numbers_lines_from_one():
    sentences = tokenize("你好。\n再见。\n今天。")
    assert [s.sentence_number for s in sentences] == [1, 2, 3]
    assert [s.original for s in sentences] == ["你好。", "再见。", "今天。"]


def test_tokenize_skips_blank_and_punctuation_lines():
    """Blank lines and lines of only punctuation leave no gap in numbering."""
    sentences = tokenize("  你好。  \n\n……\n“”\n。！？\n再见。")
    assert [s.original for s in sentences] == ["你好。", "再见。"]
    assert [s.sentence_number for s in sentences] == [1, 2]


def test_tokenize_new_sentences_are_pending():
    sentence = tokenize("你好。")[0]
    assert sentence.analysis_state == AnalysisState.PENDING
    assert sentence.translation_state == AnalysisState.PENDING
    assert sentence.is_title is False
    assert sentence.display_mode is None


def test_tokenize_empty_content():
    assert tokenize("") == []
    assert tokenize("\n \n") == []


def test_is_punctuation_only():
    assert is_punctuation_only("……")
    assert is_punctuation_only("「」")
    assert not is_punctuation_only("好。")


def test_make_title_sentence():
    title = make_title_sentence("第一章 开始")
    assert title.sentence_number == 0
    assert title.is_title is True
    assert title.original == "第一章 开始"

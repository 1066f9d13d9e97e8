"""Tests for chapter detection and splitting."""

import pytest

from doc_truyen.config import SegmenterConfig
from doc_truyen.errors import ValidationError
from doc_truyen.text.segmenter import ChapterSegmenter, build_heading_regex, segment
from doc_truyen.text.tokenizer import tokenize


@pytest.fixture
def segmenter():
    return ChapterSegmenter(SegmenterConfig())


def body_texts(chapter):
    return [s.original for _, s in chapter.body_sentences()]


class TestFindChapters:
    """Heading detection."""

    def test_two_chapter_scenario(self, segmenter, sample_text):
        chapters = segmenter.segment(sample_text)

        assert len(chapters) == 2
        assert chapters[0].title == "Chương 1: Mở đầu"
        assert body_texts(chapters[0]) == ["你好。", "再见。"]
        assert chapters[1].title == "Chương 2"
        assert body_texts(chapters[1]) == ["今天。"]

    def test_chapter_numbers_captured(self, segmenter, sample_text):
        chapters = segmenter.segment(sample_text)
        assert chapters[0].chapter_number == "1"
        assert chapters[1].chapter_number == "2"

    def test_chinese_headings(self, segmenter):
        text = "第一章 初入江湖\n他走了。\n第三十一章\n她来了。"
        chapters = segmenter.segment(text)

        assert [c.title for c in chapters] == ["第一章 初入江湖", "第三十一章"]
        assert chapters[1].chapter_number == "三十一"
        assert chapters[1].display_number == "31"

    def test_heading_needs_numeral_and_qualifier(self, segmenter):
        """A line that merely starts with 第 is not a heading."""
        chapters = segmenter.segment("第三天，他来了。\n然后走了。")
        assert len(chapters) == 1
        assert chapters[0].title == "Văn bản chính"

    def test_no_headings_gives_default_chapter(self, segmenter):
        chapters = segmenter.segment("你好。\n再见。")
        assert len(chapters) == 1
        assert chapters[0].title == "Văn bản chính"
        assert chapters[0].chapter_number is None
        assert body_texts(chapters[0]) == ["你好。", "再见。"]

    def test_empty_document_gives_no_chapters(self, segmenter):
        assert segmenter.segment("") == []
        assert segmenter.segment("  \n\t\n") == []

    def test_preface_before_first_heading(self, segmenter):
        chapters = segmenter.segment("序言内容。\nChương 1\n正文。")
        assert [c.title for c in chapters] == ["Phần mở đầu", "Chương 1"]
        assert body_texts(chapters[0]) == ["序言内容。"]

    def test_back_to_back_headings_skip_empty_chapter(self, segmenter):
        chapters = segmenter.segment("Chương 1\nChương 2\n内容。")
        assert [c.title for c in chapters] == ["Chương 2"]

    def test_heading_title_whitespace_collapsed(self, segmenter):
        chapters = segmenter.segment("Chapter   3 :   The   Road\ntext.")
        assert chapters[0].title == "Chapter 3 : The Road"

    def test_custom_keywords(self):
        config = SegmenterConfig(heading_keywords=["Tiết"], heading_suffixes=[])
        chapters = ChapterSegmenter(config).segment("Tiết 1\nA.\nTiết 2\nB.\nChương 3\nC.")
        assert [c.title for c in chapters] == ["Tiết 1", "Tiết 2"]
        assert body_texts(chapters[1]) == ["B.", "Chương 3", "C."]

    def test_empty_keywords_rejected(self):
        with pytest.raises(ValidationError):
            build_heading_regex([], ["章"])


class TestSentenceNumbering:
    """Title sentence is 0 and body sentences run 1..N."""

    def test_title_then_body(self, segmenter, sample_text):
        for chapter in segmenter.segment(sample_text):
            title = chapter.sentences[0]
            assert title.is_title
            assert title.sentence_number == 0
            assert title.original == chapter.title
            numbers = [s.sentence_number for _, s in chapter.body_sentences()]
            assert numbers == list(range(1, len(numbers) + 1))


class TestSplitLargeChapter:
    """Splitting of chapters longer than the threshold."""

    def make(self, max_length: int) -> ChapterSegmenter:
        return ChapterSegmenter(SegmenterConfig(max_chapter_length=max_length))

    def test_short_chapter_not_split(self):
        parts = self.make(100).split_large_chapter("T", "短。")
        assert parts == [("T", "短。")]

    def test_split_at_sentence_boundary(self):
        content = "\n".join(f"第{i}句话在这里。" for i in range(30))
        seg = self.make(50)
        parts = seg.split_large_chapter("Chương 1", content)

        assert len(parts) > 1
        assert parts[0][0] == "Chương 1"
        assert parts[1][0] == "Chương 1 (Part 2)"
        for _, piece in parts[:-1]:
            # Cut lands just past a boundary at or before the threshold
            assert len(piece) <= 51
            assert piece.endswith("。")

    def test_sentence_counts_preserved_across_parts(self):
        lines = [f"这是第{i}个句子，内容稍微长一点。" for i in range(200)]
        content = "\n".join(lines)
        text = "Chương 1\n" + content
        chapters = self.make(300).segment(text)

        assert len(chapters) > 1
        total = sum(len(c.body_sentences()) for c in chapters)
        assert total == len(tokenize(content))
        assert {c.total_parts for c in chapters} == {len(chapters)}
        assert [c.part_number for c in chapters] == list(range(1, len(chapters) + 1))
        # Numbering restarts in every part
        for chapter in chapters:
            assert chapter.body_sentences()[0][1].sentence_number == 1

    def test_last_part_tolerance_keeps_tail(self):
        """A remainder within 1.2x the threshold is not split again."""
        content = "甲" * 60 + "。" + "乙" * 50
        parts = self.make(100).split_large_chapter("T", content)
        assert len(parts) == 1

    def test_falls_back_to_space(self):
        content = "word " * 40
        parts = self.make(50).split_large_chapter("T", content)
        assert len(parts) > 1
        assert all(len(piece) <= 50 for _, piece in parts[:-1])
        assert "".join(p.replace(" ", "") for _, p in parts) == content.replace(" ", "")

    def test_hard_cut_without_boundaries(self):
        content = "字" * 250
        parts = self.make(100).split_large_chapter("T", content)
        assert [len(p) for _, p in parts] == [100, 100, 50]

    def test_cut_always_advances(self):
        assert ChapterSegmenter._find_cut("字" * 10, 0) == 1
        assert ChapterSegmenter._find_cut("。字字", 0) == 1

    def test_unvalidated_zero_length_terminates(self):
        """A config built without validation still yields finite parts."""
        config = SegmenterConfig.model_construct(
            **{**SegmenterConfig().model_dump(), "max_chapter_length": 0}
        )
        parts = ChapterSegmenter(config).split_large_chapter("T", "字字字")
        assert [p for _, p in parts] == ["字", "字", "字"]


def test_module_level_segment(sample_text):
    chapters = segment(sample_text, SegmenterConfig())
    assert len(chapters) == 2

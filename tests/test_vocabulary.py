"""Tests for the vocabulary store."""

import io

import pytest

from doc_truyen.errors import ValidationError
from doc_truyen.models import (
    AnalyzedText,
    Chapter,
    ProcessedFile,
    Sentence,
    SpecialTerm,
    VocabularyLocation,
)
from doc_truyen.vocabulary import CSV_FIELDS, VocabularyStore


def location(chapter_index: int = 0, sentence_number: int = 1) -> VocabularyLocation:
    return VocabularyLocation(
        chapter_index=chapter_index,
        chapter_title=f"Chương {chapter_index + 1}",
        sentence_number=sentence_number,
        original_sentence="李青云来到青云宗。",
    )


def term(name: str = "青云宗", **kwargs) -> SpecialTerm:
    defaults = {
        "sino_vietnamese": "Thanh Vân Tông",
        "vietnamese_translation": "tông môn Mây Xanh",
        "category": "Địa danh",
        "explanation": "Tên một môn phái",
    }
    return SpecialTerm(term=name, **{**defaults, **kwargs})


def make_file(translations: list[str]) -> ProcessedFile:
    sentences = [Sentence(original="标题", sentence_number=0, is_title=True)]
    for i, text in enumerate(translations, start=1):
        sentences.append(Sentence(original=f"句{i}", sentence_number=i, translation=text))
    return ProcessedFile(id="f1", file_name="a.txt", chapters=[Chapter(title="T", sentences=sentences)])


def apply(file: ProcessedFile, patches) -> int:
    for patch in patches:
        sentences = file.chapters[patch.chapter_index].sentences
        sentences[patch.sentence_index] = sentences[patch.sentence_index].model_copy(
            update=patch.update
        )
    return len(patches)


class TestRecord:
    """Recording terms found by analysis."""

    def test_new_terms_added_not_forced(self):
        store = VocabularyStore()
        added = store.record([term()], location())

        assert [item.term for item in added] == ["青云宗"]
        item = store.lookup("青云宗")
        assert item.is_force_sino is False
        assert item.first_location == location()
        assert item.vietnamese_translation == "tông môn Mây Xanh"

    def test_first_location_wins(self):
        store = VocabularyStore()
        store.record([term()], location(0, 1))
        added = store.record([term(sino_vietnamese="Khác")], location(3, 7))

        assert added == []
        assert len(store) == 1
        assert store.lookup("青云宗").first_location == location(0, 1)
        assert store.lookup("青云宗").sino_vietnamese == "Thanh Vân Tông"

    def test_terms_are_case_sensitive(self):
        store = VocabularyStore()
        store.record([term("Qingyun"), term("qingyun")], location())
        assert len(store) == 2

    def test_empty_term_skipped(self):
        store = VocabularyStore()
        assert store.record([term("")], location()) == []


class TestEdit:
    """Toggle, update and delete."""

    def test_toggle_force_sino(self):
        store = VocabularyStore()
        store.record([term()], location())
        assert store.toggle_force_sino("青云宗").is_force_sino is True
        assert store.forced_sino_terms() == [{"term": "青云宗", "sinoVietnamese": "Thanh Vân Tông"}]
        assert store.toggle_force_sino("青云宗").is_force_sino is False
        assert store.forced_sino_terms() == []

    def test_update_editable_fields(self):
        store = VocabularyStore()
        store.record([term()], location())
        item = store.update("青云宗", {"category": "Môn phái", "sino_vietnamese": "Thanh Vân"})
        assert item.category == "Môn phái"
        assert item.sino_vietnamese == "Thanh Vân"
        assert item.first_location == location()

    def test_update_fixed_field_rejected(self):
        store = VocabularyStore()
        store.record([term()], location())
        with pytest.raises(ValidationError):
            store.update("青云宗", {"term": "other"})

    def test_unknown_term_rejected(self):
        store = VocabularyStore()
        with pytest.raises(ValidationError):
            store.toggle_force_sino("missing")
        with pytest.raises(ValidationError):
            store.update("missing", {"category": "x"})

    def test_delete(self):
        store = VocabularyStore()
        store.record([term("A"), term("B"), term("C")], location())
        assert store.delete("B") is True
        assert store.delete("B") is False
        assert [item.term for item in store.items] == ["A", "C"]
        assert store.lookup("C").term == "C"


class TestUnify:
    """Applying forced Hán Việt readings to translations."""

    def test_replaces_case_insensitive(self):
        store = VocabularyStore()
        store.record([term()], location())
        store.toggle_force_sino("青云宗")
        file = make_file(["Hắn đến Tông Môn Mây Xanh.", "Không liên quan."])

        patches = store.unify([file])
        assert [(p.file_id, p.chapter_index, p.sentence_index) for p in patches] == [("f1", 0, 1)]
        assert patches[0].update == {"translation": "Hắn đến Thanh Vân Tông."}

    def test_files_left_untouched(self):
        store = VocabularyStore()
        store.record([term()], location())
        store.toggle_force_sino("青云宗")
        file = make_file(["tông môn Mây Xanh"])
        before = file.chapters[0].sentences[1]

        assert len(store.unify([file])) == 1
        assert file.chapters[0].sentences[1] is before
        assert before.translation == "tông môn Mây Xanh"

    def test_idempotent(self):
        store = VocabularyStore()
        store.record([term()], location())
        store.toggle_force_sino("青云宗")
        file = make_file(["tông môn Mây Xanh và tông môn Mây Xanh"])

        assert apply(file, store.unify([file])) == 1
        first = file.chapters[0].sentences[1].translation
        assert first == "Thanh Vân Tông và Thanh Vân Tông"
        assert store.unify([file]) == []

    def test_reading_containing_translation_not_rewritten(self):
        """A Hán Việt reading that contains its own translation stays stable."""
        store = VocabularyStore()
        store.record([term("大师兄", sino_vietnamese="Đại sư huynh", vietnamese_translation="sư huynh")], location())
        store.toggle_force_sino("大师兄")
        file = make_file(["Đại sư huynh và sư huynh"])

        apply(file, store.unify([file]))
        apply(file, store.unify([file]))
        assert file.chapters[0].sentences[1].translation == "Đại sư huynh và Đại sư huynh"

    def test_analysis_translation_also_rewritten(self):
        store = VocabularyStore()
        store.record([term()], location())
        store.toggle_force_sino("青云宗")
        file = make_file([])
        file.chapters[0].sentences.append(
            Sentence(
                original="句",
                sentence_number=1,
                analysis_result=AnalyzedText(translation="Về tông môn Mây Xanh."),
            )
        )

        assert apply(file, store.unify([file])) == 1
        assert file.chapters[0].sentences[1].analysis_result.translation == "Về Thanh Vân Tông."

    def test_not_forced_or_without_translation_ignored(self):
        store = VocabularyStore()
        store.record([term(), term("B", vietnamese_translation=None)], location())
        store.toggle_force_sino("B")
        file = make_file(["tông môn Mây Xanh"])
        assert store.unify([file]) == []


class TestSerialization:
    """List and CSV forms."""

    def test_csv_round_trip(self, tmp_path):
        store = VocabularyStore()
        store.record([term(), term("李青云", vietnamese_translation=None, category="Tên người")], location(2, 5))
        store.toggle_force_sino("李青云")

        path = tmp_path / "vocab.csv"
        store.to_csv(path)
        loaded = VocabularyStore.from_csv(path)

        assert loaded.items == store.items

    def test_list_round_trip_uses_camel_case(self):
        store = VocabularyStore()
        store.record([term()], location())
        data = store.to_list()

        assert data[0]["sinoVietnamese"] == "Thanh Vân Tông"
        assert data[0]["firstLocation"]["chapterIndex"] == 0
        assert VocabularyStore.from_list(data).items == store.items

    def test_merge_keeps_existing(self):
        store = VocabularyStore()
        store.record([term()], location(0, 1))
        other = VocabularyStore()
        other.record([term(), term("新词")], location(9, 9))

        assert store.merge(other) == 1
        assert store.lookup("青云宗").first_location == location(0, 1)
        assert "新词" in store

    def test_non_numeric_location_rejected(self):
        stream = io.StringIO(
            ",".join(CSV_FIELDS) + "\n" + "青云宗,Thanh Vân Tông,,,,0,two,T,1,句\n"
        )
        with pytest.raises(ValidationError, match="line 2"):
            VocabularyStore.read_csv(stream)

    def test_invalid_utf8_file_rejected(self, tmp_path):
        path = tmp_path / "vocab.csv"
        path.write_bytes(b"term,sino_vietnamese\n\xff\xfe\xfa,x\n")
        with pytest.raises(ValidationError):
            VocabularyStore.from_csv(path)

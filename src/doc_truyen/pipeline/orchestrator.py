"""Reader orchestrator: documents, caches, vocabulary and the task queue.

All state is owned here and mutated only from the event loop thread. Sentence
and chapter updates replace the model at its index (copy-on-write), so a
snapshot handed to an observer never changes underneath it.
"""

import asyncio
import uuid
from typing import Literal, Optional

import structlog

from doc_truyen.analyzer.service import AnalysisBackend, AnalysisService
from doc_truyen.config import AppConfig, get_config
from doc_truyen.errors import ConfigurationError, ValidationError
from doc_truyen.log import bind_file_context
from doc_truyen.models import (
    DEFAULT_PAGE_SIZE,
    PAGE_SIZE_OPTIONS,
    AnalysisState,
    AnalyzedText,
    Chapter,
    ChapterRange,
    DisplayMode,
    ProcessedFile,
    ReaderSettings,
    Sentence,
    VocabularyLocation,
    WorkspaceItem,
    next_display_mode,
)
from doc_truyen.pipeline.task_queue import QueueStatus, Task, TaskQueue
from doc_truyen.services.events import EventBus, ReaderEvent
from doc_truyen.storage.backup import WorkspaceState, load_state, save_state
from doc_truyen.storage.cache import AnalysisCache, TranslationCache, chapter_translation_key
from doc_truyen.storage.store import JsonFileStore
from doc_truyen.text.segmenter import ChapterSegmenter
from doc_truyen.vocabulary import VocabularyStore

logger = structlog.get_logger()

ProcessKind = Literal["translate", "analyze"]
PROCESS_KINDS: tuple[str, ...] = ("translate", "analyze")


def stop_key(kind: str, file_id: str, chapter_index: int) -> str:
    return f"{kind}-{file_id}-{chapter_index}"


class ReaderOrchestrator:
    """Entry points for the presentation layer.

    Operations validate their input and either apply a result immediately
    (cache hit, display-mode change) or enqueue a task. Tasks run one at a
    time on the TaskQueue.
    """

    def __init__(
        self,
        backend: Optional[AnalysisBackend] = None,
        config: Optional[AppConfig] = None,
        store: Optional[JsonFileStore] = None,
        event_bus: Optional[EventBus] = None,
        state: Optional[WorkspaceState] = None,
    ):
        self.config = config or get_config()
        self.event_bus = event_bus or EventBus()
        self.queue = TaskQueue(self.event_bus)
        self.store = store
        self.segmenter = ChapterSegmenter(self.config.segmenter)

        self._backend = backend
        self._owns_backend = backend is None
        self._stop_flags: set[str] = set()
        self.revision = 0

        self.settings = ReaderSettings()
        self.files: dict[str, ProcessedFile] = {}
        self.workspace_items: list[WorkspaceItem] = []
        self.analysis_cache = AnalysisCache()
        self.translation_cache = TranslationCache()
        self.vocabulary = VocabularyStore()
        self._apply_state(state or WorkspaceState())

    @classmethod
    def from_store(
        cls,
        store: JsonFileStore,
        backend: Optional[AnalysisBackend] = None,
        config: Optional[AppConfig] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "ReaderOrchestrator":
        """Create an orchestrator with state loaded from durable storage."""
        return cls(
            backend=backend,
            config=config,
            store=store,
            event_bus=event_bus,
            state=load_state(store),
        )

    # ------------------------------------------------------------------
    # Backend and settings
    # ------------------------------------------------------------------

    @property
    def backend(self) -> AnalysisBackend:
        if self._backend is None:
            self._backend = AnalysisService.from_config(self.config, api_key=self.settings.api_key)
        return self._backend

    def update_settings(self, settings: ReaderSettings) -> None:
        """Replace reader settings. A changed API key rebuilds the default backend."""
        key_changed = settings.api_key != self.settings.api_key
        self.settings = settings
        if key_changed and self._owns_backend:
            self._backend = None
        self._emit("settings_updated", None, {})

    def _require_credential(self) -> None:
        if not self.backend.has_credential:
            raise ConfigurationError(
                "No API key configured. Set OPENAI_API_KEY or add a key in settings."
            )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def open_document(self, text: str, file_name: str) -> ProcessedFile:
        """Segment a document and add it to the workspace.

        Raises:
            ValidationError: If the text is empty or yields no chapters
        """
        if not text.strip():
            raise ValidationError("Please enter some text or upload a file.")

        chapters = self.segmenter.segment(text)
        if not chapters:
            raise ValidationError("No analysable content found in the text.")

        file = ProcessedFile(
            id=uuid.uuid4().hex[:8],
            file_name=file_name,
            chapters=chapters,
            original_content=text,
            visible_range=ChapterRange.first_page(len(chapters), DEFAULT_PAGE_SIZE),
            page_size=DEFAULT_PAGE_SIZE,
        )
        self.files[file.id] = file
        self.workspace_items.append(WorkspaceItem.from_file(file))
        logger.info("file_opened", file_id=file.id, name=file_name, chapters=len(chapters))
        self._emit("file_opened", file.id, {"file_name": file_name, "chapters": len(chapters)})
        return file

    def close_file(self, file_id: str) -> None:
        """Remove a file and drop its waiting tasks."""
        self.get_file(file_id)
        del self.files[file_id]
        self.workspace_items = [w for w in self.workspace_items if w.id != file_id]
        self.queue.discard(lambda task: task.file_id == file_id)
        self._stop_flags = {k for k in self._stop_flags if f"-{file_id}-" not in k}
        logger.info("file_closed", file_id=file_id)
        self._emit("file_closed", file_id, {})

    def snapshot(self, file_id: str) -> ProcessedFile:
        """Deep copy of a file's current tree for observers."""
        return self.get_file(file_id).model_copy(deep=True)

    def queue_status(self) -> QueueStatus:
        return self.queue.status()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_file(self, file_id: str) -> ProcessedFile:
        file = self.files.get(file_id)
        if file is None:
            raise ValidationError(f"File not found: {file_id}")
        return file

    def _get_chapter(self, file_id: str, chapter_index: int) -> Chapter:
        file = self.get_file(file_id)
        if not 0 <= chapter_index < len(file.chapters):
            raise ValidationError(f"Chapter index out of range: {chapter_index}")
        return file.chapters[chapter_index]

    def _get_sentence(self, file_id: str, chapter_index: int, sentence_index: int) -> Sentence:
        chapter = self._get_chapter(file_id, chapter_index)
        if not 0 <= sentence_index < len(chapter.sentences):
            raise ValidationError(f"Sentence index out of range: {sentence_index}")
        return chapter.sentences[sentence_index]

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def _update_sentence(
        self, file_id: str, chapter_index: int, sentence_index: int, **changes
    ) -> Optional[Sentence]:
        file = self.files.get(file_id)
        if file is None:
            # File closed while its task was running
            return None
        chapter = file.chapters[chapter_index]
        sentences = list(chapter.sentences)
        sentences[sentence_index] = sentences[sentence_index].model_copy(update=changes)
        file.chapters[chapter_index] = chapter.model_copy(update={"sentences": sentences})
        self.revision += 1
        updated = sentences[sentence_index]
        self._emit(
            "sentence_updated",
            file_id,
            {
                "chapter_index": chapter_index,
                "sentence_index": sentence_index,
                "analysis_state": updated.analysis_state.value,
                "translation_state": updated.translation_state.value,
            },
        )
        return updated

    def _update_chapter(self, file_id: str, chapter_index: int, **changes) -> Optional[Chapter]:
        file = self.files.get(file_id)
        if file is None:
            return None
        file.chapters[chapter_index] = file.chapters[chapter_index].model_copy(update=changes)
        self.revision += 1
        self._emit("chapter_updated", file_id, {"chapter_index": chapter_index, **changes})
        return file.chapters[chapter_index]

    def toggle_chapter(self, file_id: str, chapter_index: int) -> Chapter:
        chapter = self._get_chapter(file_id, chapter_index)
        return self._update_chapter(file_id, chapter_index, is_expanded=not chapter.is_expanded)

    def set_display_mode(
        self, file_id: str, chapter_index: int, sentence_index: int, mode: DisplayMode
    ) -> Sentence:
        self._get_sentence(file_id, chapter_index, sentence_index)
        return self._update_sentence(file_id, chapter_index, sentence_index, display_mode=mode)

    # ------------------------------------------------------------------
    # Chapter paging
    # ------------------------------------------------------------------

    def set_visible_range(self, file_id: str, first: int, last: int) -> ProcessedFile:
        """Show chapters first..last, counted from 1 as the reader numbers them.

        Raises:
            ValidationError: If the range is empty or reaches outside the file
        """
        file = self.get_file(file_id)
        total = len(file.chapters)
        if first < 1 or last > total or first > last:
            raise ValidationError(
                f"Invalid chapter range {first}-{last}: chapters run from 1 to {total}."
            )
        return self._set_view(file_id, visible_range=ChapterRange(start=first - 1, end=last - 1))

    def show_page(self, file_id: str, page: int) -> ProcessedFile:
        """Show the page-th block of page_size chapters, counted from 1."""
        file = self.get_file(file_id)
        if not 1 <= page <= file.page_count:
            raise ValidationError(f"Page must be between 1 and {file.page_count}")
        start = (page - 1) * file.page_size
        end = min(start + file.page_size, len(file.chapters)) - 1
        return self._set_view(file_id, visible_range=ChapterRange(start=start, end=end))

    def set_page_size(self, file_id: str, page_size: int) -> ProcessedFile:
        """Change chapters per page and go back to the first page."""
        file = self.get_file(file_id)
        if page_size not in PAGE_SIZE_OPTIONS:
            options = ", ".join(str(n) for n in PAGE_SIZE_OPTIONS)
            raise ValidationError(f"Page size must be one of {options}")
        return self._set_view(
            file_id,
            page_size=page_size,
            visible_range=ChapterRange.first_page(len(file.chapters), page_size),
        )

    def _set_view(self, file_id: str, **changes) -> ProcessedFile:
        file = self.files[file_id].model_copy(update=changes)
        self.files[file_id] = file
        self.revision += 1
        self._emit(
            "visible_range_changed",
            file_id,
            {
                "start": file.visible_range.start,
                "end": file.visible_range.end,
                "page_size": file.page_size,
            },
        )
        return file

    # ------------------------------------------------------------------
    # Per-sentence analysis
    # ------------------------------------------------------------------

    def analyze(self, file_id: str, chapter_index: int, sentence_index: int) -> Optional[Task]:
        """Handle a click on a sentence.

        loading → ignored; done → next display mode; cached → applied now;
        otherwise an analysis task is queued.

        Returns:
            The queued task, or None if nothing was queued

        Raises:
            ConfigurationError: If no API key is available
            ValidationError: If an index is out of range
        """
        sentence = self._get_sentence(file_id, chapter_index, sentence_index)

        if sentence.analysis_state == AnalysisState.LOADING:
            return None

        if sentence.analysis_state == AnalysisState.DONE:
            self._update_sentence(
                file_id,
                chapter_index,
                sentence_index,
                display_mode=next_display_mode(sentence.display_mode),
            )
            return None

        self._require_credential()

        cached = self.analysis_cache.get(sentence.original)
        if cached is not None:
            self._apply_analysis(file_id, chapter_index, sentence_index, cached)
            return None

        chapter = self._get_chapter(file_id, chapter_index)

        async def action() -> None:
            bind_file_context(file_id)
            await self._analyze_sentence(file_id, chapter_index, sentence_index)

        task = Task(
            id=f"analyze-{file_id}-{chapter_index}-{sentence_index}",
            description=f"Analyzing sentence {sentence.sentence_number} of “{chapter.title}”",
            action=action,
            file_id=file_id,
        )
        return task if self.queue.enqueue(task) else None

    def _apply_analysis(
        self, file_id: str, chapter_index: int, sentence_index: int, result: AnalyzedText
    ) -> None:
        self._update_sentence(
            file_id,
            chapter_index,
            sentence_index,
            analysis_state=AnalysisState.DONE,
            analysis_result=result,
            analysis_error=None,
            display_mode=self.settings.default_display_mode,
        )

    async def _analyze_sentence(self, file_id: str, chapter_index: int, sentence_index: int) -> None:
        """Analyse one sentence: cache, else remote call + cache + vocabulary.

        Re-raises the service error after recording it on the sentence.
        """
        file = self.files.get(file_id)
        if file is None:
            return
        chapter = file.chapters[chapter_index]
        sentence = chapter.sentences[sentence_index]

        # An earlier task may have analysed the same text
        cached = self.analysis_cache.get(sentence.original)
        if cached is not None:
            self._apply_analysis(file_id, chapter_index, sentence_index, cached)
            return

        self._update_sentence(
            file_id, chapter_index, sentence_index,
            analysis_state=AnalysisState.LOADING, analysis_error=None,
        )
        try:
            result = await self.backend.analyze_sentence(
                sentence.original, self.vocabulary.forced_sino_terms()
            )
        except Exception as e:
            self._update_sentence(
                file_id, chapter_index, sentence_index,
                analysis_state=AnalysisState.ERROR, analysis_error=str(e),
            )
            raise

        self.analysis_cache.set(sentence.original, result)
        self._apply_analysis(file_id, chapter_index, sentence_index, result)

        location = VocabularyLocation(
            chapter_index=chapter_index,
            chapter_title=chapter.title,
            sentence_number=sentence.sentence_number,
            original_sentence=sentence.original,
        )
        added = self.vocabulary.record(result.special_terms, location)
        if added:
            self._emit("vocabulary_updated", file_id, {"added": [item.term for item in added]})

    # ------------------------------------------------------------------
    # Chapter batch translation
    # ------------------------------------------------------------------

    def translate_chapter(self, file_id: str, chapter_index: int) -> Optional[Task]:
        """Queue batch translation of a chapter's pending sentences.

        Raises:
            ConfigurationError: If no API key is available
            ValidationError: If the chapter does not exist
        """
        chapter = self._get_chapter(file_id, chapter_index)
        self._require_credential()

        async def action() -> None:
            bind_file_context(file_id)
            await self._run_chapter_translation(file_id, chapter_index)

        task = Task(
            id=f"translate-{file_id}-{chapter_index}",
            description=f"Translating “{chapter.title}”",
            action=action,
            file_id=file_id,
        )
        return task if self.queue.enqueue(task) else None

    async def _pace(self) -> None:
        delay = self.config.queue.pacing_ms / 1000
        if delay > 0:
            await asyncio.sleep(delay)

    async def _run_chapter_translation(self, file_id: str, chapter_index: int) -> None:
        key = stop_key("translate", file_id, chapter_index)
        self._stop_flags.discard(key)
        if file_id not in self.files:
            return

        chapter = self._update_chapter(
            file_id, chapter_index, is_batch_translating=True, batch_translation_progress=0.0
        )
        targets = [
            i for i, s in chapter.body_sentences() if s.translation_state == AnalysisState.PENDING
        ]
        total = len(targets)
        translated = 0

        # Sentences already translated elsewhere are applied without a call
        remaining: list[int] = []
        for i in targets:
            cached = self.translation_cache.get(chapter.sentences[i].original)
            if cached is None:
                remaining.append(i)
                continue
            self._update_sentence(
                file_id, chapter_index, i,
                translation_state=AnalysisState.DONE, translation=cached, translation_error=None,
            )
            translated += 1
        self._set_progress("translate", file_id, chapter_index, translated, total)

        batch_size = max(1, self.config.queue.batch_size)
        stopped = False
        try:
            for start in range(0, len(remaining), batch_size):
                if start > 0:
                    await self._pace()
                if key in self._stop_flags or file_id not in self.files:
                    stopped = True
                    break

                batch = remaining[start : start + batch_size]
                sentences = self.files[file_id].chapters[chapter_index].sentences
                texts = [sentences[i].original for i in batch]
                for i in batch:
                    self._update_sentence(
                        file_id, chapter_index, i, translation_state=AnalysisState.LOADING
                    )

                try:
                    translations = await self.backend.translate_sentences_in_batch(
                        texts, self.vocabulary.forced_sino_terms()
                    )
                except Exception as e:
                    for i in batch:
                        self._update_sentence(
                            file_id, chapter_index, i,
                            translation_state=AnalysisState.ERROR, translation_error=str(e),
                        )
                    raise

                for i, text, translation in zip(batch, texts, translations):
                    self.translation_cache.set(text, translation)
                    self._update_sentence(
                        file_id, chapter_index, i,
                        translation_state=AnalysisState.DONE,
                        translation=translation,
                        translation_error=None,
                    )
                translated += len(batch)
                self._set_progress("translate", file_id, chapter_index, translated, total)
                logger.debug(
                    "batch_translated", chapter=chapter_index, done=translated, total=total
                )
        finally:
            stopped = stopped or key in self._stop_flags
            self._stop_flags.discard(key)
            self._update_chapter(file_id, chapter_index, is_batch_translating=False)

        if file_id not in self.files:
            logger.info("chapter_translation_abandoned", chapter=chapter_index, done=translated)
            return
        if stopped:
            logger.info("chapter_translation_stopped", chapter=chapter_index, done=translated)
            return

        self._store_chapter_translation(file_id, chapter_index)
        logger.info("chapter_translated", chapter=chapter_index, sentences=translated)

        if self.config.queue.chain_analysis_after_translation:
            self.analyze_chapter_sequentially(file_id, chapter_index)

    def _store_chapter_translation(self, file_id: str, chapter_index: int) -> None:
        """Cache the joined chapter translation once every body sentence is done."""
        chapter = self.files[file_id].chapters[chapter_index]
        body = [s for _, s in chapter.body_sentences()]
        if not body or any(s.translation_state != AnalysisState.DONE for s in body):
            return
        key = chapter_translation_key(file_id, chapter_index, chapter.title)
        self.translation_cache.set(key, "\n".join(s.translation or "" for s in body))

    def chapter_translation(self, file_id: str, chapter_index: int) -> Optional[str]:
        """Full translated text of a chapter, if it has been completed."""
        chapter = self._get_chapter(file_id, chapter_index)
        return self.translation_cache.get(
            chapter_translation_key(file_id, chapter_index, chapter.title)
        )

    def reset_translation_errors(self, file_id: str, chapter_index: int) -> int:
        """Move failed translations back to pending so the next run retries them."""
        chapter = self._get_chapter(file_id, chapter_index)
        failed = [
            i for i, s in chapter.body_sentences() if s.translation_state == AnalysisState.ERROR
        ]
        for i in failed:
            self._update_sentence(
                file_id, chapter_index, i,
                translation_state=AnalysisState.PENDING, translation_error=None,
            )
        return len(failed)

    # ------------------------------------------------------------------
    # Chapter sequential analysis
    # ------------------------------------------------------------------

    def analyze_chapter_sequentially(self, file_id: str, chapter_index: int) -> Optional[Task]:
        """Queue analysis of every pending sentence of a chapter, one at a time.

        Raises:
            ConfigurationError: If no API key is available
            ValidationError: If the chapter does not exist
        """
        chapter = self._get_chapter(file_id, chapter_index)
        self._require_credential()

        async def action() -> None:
            bind_file_context(file_id)
            await self._run_chapter_analysis(file_id, chapter_index)

        task = Task(
            id=f"analyze-chapter-{file_id}-{chapter_index}",
            description=f"Analyzing “{chapter.title}”",
            action=action,
            file_id=file_id,
        )
        return task if self.queue.enqueue(task) else None

    async def _run_chapter_analysis(self, file_id: str, chapter_index: int) -> None:
        key = stop_key("analyze", file_id, chapter_index)
        self._stop_flags.discard(key)
        if file_id not in self.files:
            return

        chapter = self._update_chapter(
            file_id, chapter_index, is_batch_analyzing=True, batch_analysis_progress=0.0
        )
        targets = [
            i for i, s in enumerate(chapter.sentences) if s.analysis_state == AnalysisState.PENDING
        ]
        total = len(targets)
        processed = 0
        stopped = False
        try:
            for n, i in enumerate(targets):
                if n > 0:
                    await self._pace()
                if key in self._stop_flags or file_id not in self.files:
                    stopped = True
                    break
                await self._analyze_sentence(file_id, chapter_index, i)
                processed += 1
                self._set_progress("analyze", file_id, chapter_index, processed, total)
        finally:
            stopped = stopped or key in self._stop_flags
            self._stop_flags.discard(key)
            self._update_chapter(file_id, chapter_index, is_batch_analyzing=False)

        if stopped:
            logger.info("chapter_analysis_stopped", chapter=chapter_index, done=processed)
        else:
            self._set_progress("analyze", file_id, chapter_index, processed, total)
            logger.info("chapter_analyzed", chapter=chapter_index, sentences=processed)

    # ------------------------------------------------------------------
    # Progress and cancellation
    # ------------------------------------------------------------------

    def _set_progress(
        self, kind: str, file_id: str, chapter_index: int, done: int, total: int
    ) -> None:
        if file_id not in self.files:
            return
        progress = done / total if total else 1.0
        field = "batch_translation_progress" if kind == "translate" else "batch_analysis_progress"
        self._update_chapter(file_id, chapter_index, **{field: progress})
        self._emit(
            "chapter_progress",
            file_id,
            {"chapter_index": chapter_index, "kind": kind, "progress": progress},
        )

    def is_stop_requested(self, kind: str, file_id: str, chapter_index: int) -> bool:
        return stop_key(kind, file_id, chapter_index) in self._stop_flags

    def stop_process(self, kind: ProcessKind, file_id: str, chapter_index: int) -> None:
        """Cooperatively stop a chapter translation or analysis run.

        The running loop exits before its next unit of work; a call already in
        flight completes. Sentences left loading go back to pending.
        """
        if kind not in PROCESS_KINDS:
            raise ValidationError(f"Unknown process type: {kind}")
        chapter = self._get_chapter(file_id, chapter_index)

        self._stop_flags.add(stop_key(kind, file_id, chapter_index))
        task_id = (
            f"translate-{file_id}-{chapter_index}"
            if kind == "translate"
            else f"analyze-chapter-{file_id}-{chapter_index}"
        )
        self.queue.discard(lambda task: task.id == task_id)

        state_field = "translation_state" if kind == "translate" else "analysis_state"
        for i, sentence in enumerate(chapter.sentences):
            if getattr(sentence, state_field) == AnalysisState.LOADING:
                self._update_sentence(
                    file_id, chapter_index, i, **{state_field: AnalysisState.PENDING}
                )

        flag = "is_batch_translating" if kind == "translate" else "is_batch_analyzing"
        self._update_chapter(file_id, chapter_index, **{flag: False})
        logger.info("process_stop_requested", kind=kind, chapter=chapter_index)

    # ------------------------------------------------------------------
    # Vocabulary
    # ------------------------------------------------------------------

    def unify_vocabulary(self) -> int:
        """Apply force-Sino readings to every translation in open files.

        Returns:
            Number of sentences rewritten
        """
        patches = self.vocabulary.unify(self.files.values())
        for patch in patches:
            self._update_sentence(
                patch.file_id, patch.chapter_index, patch.sentence_index, **patch.update
            )
        if patches:
            self._emit("vocabulary_unified", None, {"sentences": len(patches)})
        return len(patches)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def export_state(self) -> WorkspaceState:
        return WorkspaceState(
            settings=self.settings,
            vocabulary=list(self.vocabulary.items),
            analysis_cache=self.analysis_cache,
            translation_cache=self.translation_cache,
            workspace_items=list(self.workspace_items),
            files=dict(self.files),
        )

    def import_state(self, state: WorkspaceState) -> None:
        """Replace all in-memory state. Waiting tasks are dropped."""
        self.queue.discard(lambda task: True)
        self._stop_flags.clear()
        self._apply_state(state)
        self.revision += 1
        logger.info("state_imported", files=len(self.files), vocabulary=len(self.vocabulary))
        self._emit("state_imported", None, {"files": len(self.files)})

    def _apply_state(self, state: WorkspaceState) -> None:
        if state.settings.api_key != self.settings.api_key and self._owns_backend:
            self._backend = None
        self.settings = state.settings
        self.vocabulary = VocabularyStore(list(state.vocabulary))
        self.analysis_cache = state.analysis_cache
        self.translation_cache = state.translation_cache
        self.files = {file_id: _reset_transient(f) for file_id, f in state.files.items()}
        self.workspace_items = list(state.workspace_items)

    def save(self) -> None:
        """Persist state to the configured store, if any."""
        if self.store is not None:
            save_state(self.store, self.export_state())

    def _emit(self, event_type: str, file_id: Optional[str], data: dict) -> None:
        self.event_bus.emit(
            ReaderEvent(type=event_type, data={"revision": self.revision, **data}, file_id=file_id)
        )


def _reset_transient(file: ProcessedFile) -> ProcessedFile:
    """Clear in-flight markers left by a previous session."""
    chapters = []
    for chapter in file.chapters:
        sentences = [
            s.model_copy(
                update={
                    "analysis_state": AnalysisState.PENDING
                    if s.analysis_state == AnalysisState.LOADING
                    else s.analysis_state,
                    "translation_state": AnalysisState.PENDING
                    if s.translation_state == AnalysisState.LOADING
                    else s.translation_state,
                }
            )
            for s in chapter.sentences
        ]
        chapters.append(
            chapter.model_copy(
                update={
                    "sentences": sentences,
                    "is_batch_translating": False,
                    "is_batch_analyzing": False,
                }
            )
        )
    return file.model_copy(
        update={"chapters": chapters, "visible_range": _loaded_range(file)}
    )


def _loaded_range(file: ProcessedFile) -> ChapterRange:
    """Visible range of a stored file, falling back to its first page."""
    last = max(0, len(file.chapters) - 1)
    current = file.visible_range
    if "visible_range" not in file.model_fields_set or current.start > last:
        return ChapterRange.first_page(len(file.chapters), file.page_size)
    return current.model_copy(update={"end": min(max(current.end, current.start), last)})

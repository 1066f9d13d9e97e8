"""Analysis and translation routes: enqueue work, stop it, watch the queue."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends

from doc_truyen.api.deps import get_orchestrator, require_file
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.pipeline.task_queue import Task

router = APIRouter(prefix="/api/v1", tags=["processing"])


def _queued(task: Optional[Task], orchestrator: ReaderOrchestrator) -> dict[str, Any]:
    return {
        "queued": task is not None,
        "taskId": task.id if task else None,
        "queue": orchestrator.queue_status().model_dump(),
    }


@router.post("/files/{file_id}/chapters/{chapter_index}/sentences/{sentence_index}/analyze")
async def analyze_sentence(
    file_id: str,
    chapter_index: int,
    sentence_index: int,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Sentence click: analyse, apply a cached result, or cycle the display mode."""
    require_file(orchestrator, file_id)
    task = orchestrator.analyze(file_id, chapter_index, sentence_index)
    sentence = orchestrator.files[file_id].chapters[chapter_index].sentences[sentence_index]
    return {**_queued(task, orchestrator), "sentence": sentence.to_json_dict()}


@router.post("/files/{file_id}/chapters/{chapter_index}/translate")
async def translate_chapter(
    file_id: str,
    chapter_index: int,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Queue batch translation of a chapter."""
    require_file(orchestrator, file_id)
    task = orchestrator.translate_chapter(file_id, chapter_index)
    return _queued(task, orchestrator)


@router.post("/files/{file_id}/chapters/{chapter_index}/analyze")
async def analyze_chapter(
    file_id: str,
    chapter_index: int,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Queue sentence-by-sentence analysis of a chapter."""
    require_file(orchestrator, file_id)
    task = orchestrator.analyze_chapter_sequentially(file_id, chapter_index)
    return _queued(task, orchestrator)


@router.post("/files/{file_id}/chapters/{chapter_index}/retry-translation")
async def retry_translation(
    file_id: str,
    chapter_index: int,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Reset failed translations to pending and queue the chapter again."""
    require_file(orchestrator, file_id)
    reset = orchestrator.reset_translation_errors(file_id, chapter_index)
    task = orchestrator.translate_chapter(file_id, chapter_index)
    return {**_queued(task, orchestrator), "reset": reset}


@router.post("/files/{file_id}/chapters/{chapter_index}/stop/{kind}")
async def stop_process(
    file_id: str,
    chapter_index: int,
    kind: Literal["translate", "analyze"],
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Request a cooperative stop of a chapter run."""
    require_file(orchestrator, file_id)
    orchestrator.stop_process(kind, file_id, chapter_index)
    return {"status": "stopping"}


@router.get("/queue")
async def queue_status(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Current task, waiting count and recent failures."""
    return {
        **orchestrator.queue_status().model_dump(),
        "pending": orchestrator.queue.pending_ids(),
        "errors": [
            {"taskId": e.task_id, "description": e.description, "message": e.message}
            for e in list(orchestrator.queue.errors)[-20:]
        ],
    }

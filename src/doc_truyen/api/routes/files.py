"""Workspace file routes: open, list, read, page through and close documents."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from doc_truyen.api.deps import get_orchestrator, require_file
from doc_truyen.models import DisplayMode, ProcessedFile
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator

router = APIRouter(prefix="/api/v1/files", tags=["files"])


class OpenFileRequest(BaseModel):
    """Request body for opening a document."""

    text: str
    file_name: str = "untitled.txt"


class DisplayModeRequest(BaseModel):
    mode: DisplayMode


class VisibleRangeRequest(BaseModel):
    """Chapters to show, numbered from 1 and inclusive."""

    first_chapter: int
    last_chapter: int


class PageRequest(BaseModel):
    page: int


class PageSizeRequest(BaseModel):
    page_size: int


def _view(file: ProcessedFile) -> dict[str, Any]:
    return {
        "visibleRange": file.visible_range.to_json_dict(),
        "pageSize": file.page_size,
        "pageCount": file.page_count,
    }


@router.get("")
async def list_files(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    """List workspace tabs in opening order."""
    return [item.to_json_dict() for item in orchestrator.workspace_items]


@router.post("", status_code=201)
async def open_file(
    request: OpenFileRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Segment a document and add it to the workspace."""
    file = orchestrator.open_document(request.text, request.file_name)
    orchestrator.save()
    return file.to_json_dict()


@router.get("/{file_id}")
async def get_file(
    file_id: str,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Full chapter/sentence tree of a file."""
    require_file(orchestrator, file_id)
    return orchestrator.snapshot(file_id).to_json_dict()


@router.delete("/{file_id}")
async def close_file(
    file_id: str,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Close a file and drop its waiting tasks."""
    require_file(orchestrator, file_id)
    orchestrator.close_file(file_id)
    orchestrator.save()
    return {"status": "ok"}


@router.post("/{file_id}/chapters/{chapter_index}/toggle")
async def toggle_chapter(
    file_id: str,
    chapter_index: int,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Expand or collapse a chapter."""
    require_file(orchestrator, file_id)
    chapter = orchestrator.toggle_chapter(file_id, chapter_index)
    return {"isExpanded": chapter.is_expanded}


@router.put("/{file_id}/chapters/{chapter_index}/sentences/{sentence_index}/display-mode")
async def set_display_mode(
    file_id: str,
    chapter_index: int,
    sentence_index: int,
    request: DisplayModeRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Pick a display mode directly instead of cycling."""
    require_file(orchestrator, file_id)
    sentence = orchestrator.set_display_mode(file_id, chapter_index, sentence_index, request.mode)
    return sentence.to_json_dict()


@router.get("/{file_id}/visible-chapters")
async def get_visible_chapters(
    file_id: str,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Chapters on the current page, each with its index in the file."""
    require_file(orchestrator, file_id)
    file = orchestrator.snapshot(file_id)
    return {
        **_view(file),
        "chapters": [
            {"index": index, **chapter.to_json_dict()} for index, chapter in file.visible_chapters()
        ],
    }


@router.put("/{file_id}/visible-range")
async def set_visible_range(
    file_id: str,
    request: VisibleRangeRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Show a custom range of chapters."""
    require_file(orchestrator, file_id)
    file = orchestrator.set_visible_range(file_id, request.first_chapter, request.last_chapter)
    orchestrator.save()
    return _view(file)


@router.put("/{file_id}/page")
async def show_page(
    file_id: str,
    request: PageRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Jump to a page of chapters."""
    require_file(orchestrator, file_id)
    file = orchestrator.show_page(file_id, request.page)
    orchestrator.save()
    return _view(file)


@router.put("/{file_id}/page-size")
async def set_page_size(
    file_id: str,
    request: PageSizeRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Change chapters per page; the first page is shown afterwards."""
    require_file(orchestrator, file_id)
    file = orchestrator.set_page_size(file_id, request.page_size)
    orchestrator.save()
    return _view(file)

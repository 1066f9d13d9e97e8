"""Shared request dependencies."""

from fastapi import HTTPException, Request

from doc_truyen.models import ProcessedFile
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator


def get_orchestrator(request: Request) -> ReaderOrchestrator:
    """The orchestrator stored on app.state by create_app()."""
    return request.app.state.orchestrator


def require_file(orchestrator: ReaderOrchestrator, file_id: str) -> ProcessedFile:
    """Return an open file, raising 404 if it is not in the workspace."""
    file = orchestrator.files.get(file_id)
    if file is None:
        raise HTTPException(status_code=404, detail="File not found")
    return file

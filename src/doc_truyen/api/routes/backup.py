"""Backup routes: export and import the whole workspace."""

from typing import Any

from fastapi import APIRouter, Depends

from doc_truyen.api.deps import get_orchestrator
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.storage.backup import pack, unpack

router = APIRouter(prefix="/api/v1/backup", tags=["backup"])


@router.get("")
async def export_backup(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Versioned envelope with settings, vocabulary, caches and files."""
    return pack(orchestrator.export_state())


@router.post("")
async def import_backup(
    envelope: dict[str, Any],
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Replace all workspace state with a backup.

    An invalid envelope is rejected with 422 and the current state is kept.
    """
    state = unpack(envelope)
    orchestrator.import_state(state)
    orchestrator.save()
    return {
        "status": "ok",
        "files": len(orchestrator.files),
        "vocabulary": len(orchestrator.vocabulary),
    }

"""Vocabulary routes: list, edit, force Hán Việt readings, CSV import/export."""

import io
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from doc_truyen.api.deps import get_orchestrator
from doc_truyen.errors import ValidationError
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.vocabulary import VocabularyStore

router = APIRouter(prefix="/api/v1/vocabulary", tags=["vocabulary"])


class VocabularyUpdateRequest(BaseModel):
    """Partial edit of a vocabulary item."""

    sino_vietnamese: Optional[str] = None
    vietnamese_translation: Optional[str] = None
    category: Optional[str] = None
    explanation: Optional[str] = None
    is_force_sino: Optional[bool] = None


class VocabularyResponse(BaseModel):
    """Response with vocabulary items."""

    items: list[dict[str, Any]]
    total: int


@router.get("", response_model=VocabularyResponse)
async def list_vocabulary(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> VocabularyResponse:
    """All vocabulary items in the order they were first seen."""
    items = orchestrator.vocabulary.to_list()
    return VocabularyResponse(items=items, total=len(items))


@router.get("/export")
async def export_vocabulary_csv(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Export vocabulary as CSV download."""
    output = io.StringIO()
    orchestrator.vocabulary.write_csv(output)
    output.seek(0)
    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=vocabulary.csv"},
    )


@router.post("/import")
async def import_vocabulary_csv(
    file: UploadFile = File(...),
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Import vocabulary rows from an uploaded CSV. Existing terms are kept."""
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError(f"Vocabulary CSV must be UTF-8 text: {e}") from e
    imported = orchestrator.vocabulary.merge(VocabularyStore.read_csv(io.StringIO(text)))
    orchestrator.save()
    return {"status": "ok", "imported": imported, "total": len(orchestrator.vocabulary)}


@router.post("/unify")
async def unify_vocabulary(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Rewrite translations of force-Sino terms to their Hán Việt reading."""
    changed = orchestrator.unify_vocabulary()
    orchestrator.save()
    return {"status": "ok", "changed": changed}


@router.put("/{term}")
async def update_vocabulary_item(
    term: str,
    request: VocabularyUpdateRequest,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Edit a vocabulary item."""
    if term not in orchestrator.vocabulary:
        raise HTTPException(status_code=404, detail="Term not found")
    item = orchestrator.vocabulary.update(term, request.model_dump(exclude_none=True))
    orchestrator.save()
    return item.to_json_dict()


@router.post("/{term}/force-sino")
async def toggle_force_sino(
    term: str,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Toggle whether a term must keep its Hán Việt reading."""
    if term not in orchestrator.vocabulary:
        raise HTTPException(status_code=404, detail="Term not found")
    item = orchestrator.vocabulary.toggle_force_sino(term)
    orchestrator.save()
    return item.to_json_dict()


@router.delete("/{term}")
async def delete_vocabulary_item(
    term: str,
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Delete a vocabulary item."""
    if not orchestrator.vocabulary.delete(term):
        raise HTTPException(status_code=404, detail="Term not found")
    orchestrator.save()
    return {"status": "ok"}

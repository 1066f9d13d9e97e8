"""Reader settings routes."""

from typing import Any

import pydantic
from fastapi import APIRouter, Depends, HTTPException

from doc_truyen.analyzer.service import AnalysisService
from doc_truyen.api.deps import get_orchestrator
from doc_truyen.models import ReaderSettings
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


def _public(settings: ReaderSettings) -> dict[str, Any]:
    data = settings.to_json_dict()
    data["apiKey"] = "***" if settings.api_key else ""
    return data


@router.get("")
async def get_settings(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Current reader settings; the API key is masked."""
    return _public(orchestrator.settings)


@router.put("")
async def update_settings(
    updates: dict[str, Any],
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Merge updates (camelCase or snake_case keys) into the reader settings."""
    # The masked key echoed back by a client means "unchanged"
    updates = {
        k: v for k, v in updates.items() if not (k in ("apiKey", "api_key") and v == "***")
    }
    merged = {**orchestrator.settings.model_dump(), **updates}
    try:
        settings = ReaderSettings.model_validate(merged)
    except pydantic.ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    orchestrator.update_settings(settings)
    orchestrator.save()
    return _public(orchestrator.settings)


@router.post("/test-connection")
def test_connection(
    orchestrator: ReaderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Check that the analysis endpoint accepts the effective API key."""
    service = AnalysisService.from_config(orchestrator.config, api_key=orchestrator.settings.api_key)
    return service.analysis_llm.check_connection()

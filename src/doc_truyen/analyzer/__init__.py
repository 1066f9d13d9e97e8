"""Remote sentence analysis and translation."""

from doc_truyen.analyzer.llm import LLMClient
from doc_truyen.analyzer.service import AnalysisBackend, AnalysisService

__all__ = ["AnalysisBackend", "AnalysisService", "LLMClient"]

"""Pytest configuration and fixtures."""

import asyncio
from typing import Optional

import pytest
from dotenv import load_dotenv

from doc_truyen.config import AppConfig, QueueConfig, SegmenterConfig, StorageConfig
from doc_truyen.errors import ServiceError
from doc_truyen.models import AnalyzedText, SpecialTerm, Token
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.services.events import EventBus

# Load .env at import time for pytest
load_dotenv()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")


class FakeBackend:
    """In-memory analysis backend that records every call.

    Analysis returns one token per character and "vi:<text>" as translation;
    batch translation returns "vi:<text>" per input. Failures and gates are
    switched on per test.
    """

    def __init__(self, has_credential: bool = True):
        self.has_credential = has_credential
        self.analyze_calls: list[tuple[str, list]] = []
        self.translate_calls: list[list[str]] = []
        self.forced_terms_seen: list[list] = []
        self.terms: dict[str, list[SpecialTerm]] = {}
        self.analysis_error: Optional[str] = None
        self.fail_translation_call: Optional[int] = None
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()

    async def _wait_gate(self) -> None:
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)

    async def analyze_sentence(self, text: str, forced_terms: list) -> AnalyzedText:
        self.analyze_calls.append((text, forced_terms))
        self.forced_terms_seen.append(forced_terms)
        await self._wait_gate()
        if self.analysis_error:
            raise ServiceError(self.analysis_error)
        return AnalyzedText(
            tokens=[Token(character=ch) for ch in text],
            translation=f"vi:{text}",
            special_terms=self.terms.get(text, []),
        )

    async def translate_sentences_in_batch(self, texts: list[str], forced_terms: list) -> list[str]:
        call_index = len(self.translate_calls)
        self.translate_calls.append(list(texts))
        self.forced_terms_seen.append(forced_terms)
        await self._wait_gate()
        if self.fail_translation_call == call_index:
            raise ServiceError("quota exceeded")
        return [f"vi:{t}" for t in texts]


def make_config(tmp_path=None, **queue) -> AppConfig:
    """AppConfig with no pacing and storage under tmp_path."""
    queue_settings = {"pacing_ms": 0, **queue}
    return AppConfig(
        queue=QueueConfig(**queue_settings),
        segmenter=SegmenterConfig(),
        storage=StorageConfig(data_dir=tmp_path or ".doc_truyen_test"),
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config(tmp_path):
    """Config without pacing and without chained analysis."""
    return make_config(tmp_path, chain_analysis_after_translation=False)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def orchestrator(backend, config, event_bus):
    return ReaderOrchestrator(backend=backend, config=config, event_bus=event_bus)


@pytest.fixture
def sample_text():
    return "Chương 1: Mở đầu\n你好。\n再见。\nChương 2\n今天。"

"""Tests for the analysis service and LLM client wrapper."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from doc_truyen.analyzer.llm import LLMClient
from doc_truyen.analyzer.service import (
    ANALYSIS_SYSTEM_PROMPT,
    BATCH_TRANSLATE_SYSTEM_PROMPT,
    AnalysisService,
    build_prompt_with_forced_terms,
)
from doc_truyen.config import (
    AnalysisLLMConfig,
    AppConfig,
    LLMConfig,
    TranslationLLMConfig,
)
from doc_truyen.errors import ServiceError
from doc_truyen.models import GrammarRole

ANALYSIS_RESPONSE = {
    "tokens": [
        {
            "character": "你好",
            "pinyin": "nǐ hǎo",
            "sinoVietnamese": "Nễ Hảo",
            "vietnameseMeaning": "xin chào",
            "grammarRole": "Interjection",
            "grammarExplanation": "Thán từ chào hỏi.",
        },
        {"character": "。", "grammarRole": "Punctuation"},
    ],
    "translation": "Xin chào.",
    "specialTerms": [
        {
            "term": "你好",
            "sinoVietnamese": "Nễ Hảo",
            "vietnameseTranslation": "xin chào",
            "category": "Thành ngữ",
            "explanation": "Lời chào.",
        }
    ],
    "sentenceGrammarExplanation": "Câu cảm thán.",
}


def mock_llm(response: str = "", error: Exception = None) -> LLMClient:
    llm = LLMClient(config=LLMConfig(api_key="sk-test"))
    llm.complete = AsyncMock(return_value=response, side_effect=error)
    return llm


def make_service(analysis=None, translation=None) -> AnalysisService:
    return AnalysisService(
        analysis_llm=analysis or mock_llm(),
        translation_llm=translation or mock_llm(),
    )


class TestPrompts:
    """Forced-term hints."""

    def test_no_forced_terms_leaves_prompt(self):
        assert build_prompt_with_forced_terms("base", []) == "base"

    def test_forced_terms_appended_as_json(self):
        prompt = build_prompt_with_forced_terms(
            "base", [{"term": "青云宗", "sinoVietnamese": "Thanh Vân Tông"}]
        )
        assert prompt.startswith("base\n\nForced Sino Terms")
        assert '"sinoVietnamese": "Thanh Vân Tông"' in prompt


class TestAnalyzeSentence:
    """Single-sentence analysis."""

    @pytest.mark.asyncio
    async def test_parses_camel_case_response(self):
        llm = mock_llm(json.dumps(ANALYSIS_RESPONSE, ensure_ascii=False))
        service = make_service(analysis=llm)

        result = await service.analyze_sentence("你好。", [])

        assert result.translation == "Xin chào."
        assert result.tokens[0].sino_vietnamese == "Nễ Hảo"
        assert result.tokens[0].grammar_role == GrammarRole.INTERJECTION
        assert result.tokens[1].grammar_role == GrammarRole.UNKNOWN
        assert result.special_terms[0].vietnamese_translation == "xin chào"
        assert result.sentence_grammar_explanation == "Câu cảm thán."

    @pytest.mark.asyncio
    async def test_prompt_includes_sentence_and_hints(self):
        llm = mock_llm(json.dumps(ANALYSIS_RESPONSE))
        service = make_service(analysis=llm)

        await service.analyze_sentence("你好。", [{"term": "你好", "sinoVietnamese": "Nễ Hảo"}])

        kwargs = llm.complete.call_args.kwargs
        assert kwargs["system_prompt"] == ANALYSIS_SYSTEM_PROMPT
        assert '"你好。"' in kwargs["user_prompt"]
        assert "Forced Sino Terms" in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_request_failure_wrapped(self):
        service = make_service(analysis=mock_llm(error=RuntimeError("rate limited")))
        with pytest.raises(ServiceError, match="rate limited"):
            await service.analyze_sentence("你好。", [])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        ["", "not json", "[1, 2]", json.dumps({"tokens": [], "translation": "x"})],
    )
    async def test_malformed_response_rejected(self, response):
        service = make_service(analysis=mock_llm(response))
        with pytest.raises(ServiceError):
            await service.analyze_sentence("你好。", [])


class TestTranslateBatch:
    """Batch translation."""

    @pytest.mark.asyncio
    async def test_translations_aligned_with_input(self):
        llm = mock_llm(json.dumps({"translations": ["Một.", "Hai."]}))
        service = make_service(translation=llm)

        result = await service.translate_sentences_in_batch(["一。", "二。"], [])

        assert result == ["Một.", "Hai."]
        kwargs = llm.complete.call_args.kwargs
        assert kwargs["system_prompt"] == BATCH_TRANSLATE_SYSTEM_PROMPT
        assert '["一。", "二。"]' in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_call(self):
        llm = mock_llm()
        service = make_service(translation=llm)
        assert await service.translate_sentences_in_batch([], []) == []
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_count_mismatch_rejected(self):
        service = make_service(translation=mock_llm(json.dumps({"translations": ["Một."]})))
        with pytest.raises(ServiceError, match="mismatched"):
            await service.translate_sentences_in_batch(["一。", "二。"], [])

    @pytest.mark.asyncio
    async def test_request_failure_wrapped(self):
        service = make_service(translation=mock_llm(error=RuntimeError("timeout")))
        with pytest.raises(ServiceError, match="timeout"):
            await service.translate_sentences_in_batch(["一。"], [])


class TestFromConfig:
    """Building the service from configuration."""

    def test_task_configs_fall_back_to_default(self):
        config = AppConfig(
            llm=LLMConfig(api_key="sk-default", model="gpt-4.1-mini"),
            analysis_llm=AnalysisLLMConfig(model="gpt-4.1"),
            translation_llm=TranslationLLMConfig(),
        )
        service = AnalysisService.from_config(config)

        assert service.analysis_llm.config.model == "gpt-4.1"
        assert service.analysis_llm.config.api_key == "sk-default"
        assert service.translation_llm.config.model == "gpt-4.1-mini"
        assert service.has_credential is True

    def test_user_key_overrides(self):
        config = AppConfig(llm=LLMConfig(api_key=""))
        service = AnalysisService.from_config(config, api_key="sk-user")
        assert service.analysis_llm.config.api_key == "sk-user"
        assert service.translation_llm.config.api_key == "sk-user"

    def test_no_key_means_no_credential(self):
        config = AppConfig(
            llm=LLMConfig(api_key=""),
            analysis_llm=AnalysisLLMConfig(api_key=""),
            translation_llm=TranslationLLMConfig(api_key=""),
        )
        assert AnalysisService.from_config(config).has_credential is False


class TestLLMClient:
    """Chat completion wrapper."""

    @pytest.mark.asyncio
    async def test_complete_requests_json_object(self):
        llm = LLMClient(config=LLMConfig(api_key="sk-test", model="m", max_tokens=100))
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content='  {"a": 1}  '))]
        fake = MagicMock()
        fake.chat.completions.create = AsyncMock(return_value=response)
        llm._client = fake

        text = await llm.complete("sys", "user")

        assert text == '{"a": 1}'
        kwargs = fake.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self):
        llm = LLMClient(config=LLMConfig(api_key="sk-test"))
        fake = MagicMock()
        fake.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        llm._client = fake

        with pytest.raises(RuntimeError, match="boom"):
            await llm.complete("sys", "user")
        assert fake.chat.completions.create.await_count == 1

    def test_check_connection_without_key(self):
        llm = LLMClient(config=LLMConfig(api_key=""))
        assert llm.check_connection() == {"success": False, "message": "API key is not configured"}

    def test_check_connection_lists_models(self, monkeypatch):
        calls = []

        def fake_get(url, headers, timeout):
            calls.append((url, headers))
            return httpx.Response(200, json={"data": []})

        monkeypatch.setattr(httpx, "get", fake_get)
        llm = LLMClient(config=LLMConfig(api_key="sk-test", base_url="https://llm.local/v1/"))

        assert llm.check_connection()["success"] is True
        assert calls == [("https://llm.local/v1/models", {"Authorization": "Bearer sk-test"})]

    def test_check_connection_reports_status(self, monkeypatch):
        monkeypatch.setattr(httpx, "get", lambda *a, **kw: httpx.Response(401))
        llm = LLMClient(config=LLMConfig(api_key="sk-bad"))
        assert llm.check_connection() == {"success": False, "message": "API returned 401"}

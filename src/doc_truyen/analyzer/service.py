"""Sentence analysis and batch translation against the remote LLM."""

import json
from typing import Any, Optional, Protocol

import pydantic
import structlog

from doc_truyen.analyzer.llm import LLMClient
from doc_truyen.config import AppConfig, LLMConfig, get_config, get_effective_llm_config
from doc_truyen.errors import ServiceError
from doc_truyen.models import AnalyzedText

logger = structlog.get_logger()

ForcedTerms = list[dict[str, str]]


class AnalysisBackend(Protocol):
    """Remote analysis/translation contract used by the orchestrator."""

    @property
    def has_credential(self) -> bool: ...

    async def analyze_sentence(self, text: str, forced_terms: ForcedTerms) -> AnalyzedText: ...

    async def translate_sentences_in_batch(
        self, texts: list[str], forced_terms: ForcedTerms
    ) -> list[str]: ...


ANALYSIS_SYSTEM_PROMPT = """You are an expert linguist and translator specializing in Chinese and Vietnamese. Perform a detailed grammatical analysis and translation of a single Chinese sentence.

## Response format
Return ONE valid JSON object, nothing else:
{
  "tokens": [{"character": "...", "pinyin": "...", "sinoVietnamese": "...", "vietnameseMeaning": "...", "grammarRole": "...", "grammarExplanation": "..."}],
  "translation": "...",
  "specialTerms": [{"term": "...", "sinoVietnamese": "...", "vietnameseTranslation": "...", "category": "...", "explanation": "..."}],
  "sentenceGrammarExplanation": "..."
}

## Rules
1. Tokens: split the sentence into words, characters and punctuation.
2. grammarRole is one of: Subject, Predicate, Object, Adverbial, Complement, Attribute, Particle, Interjection, Conjunction, Numeral, Measure Word, Unknown.
3. grammarExplanation and sentenceGrammarExplanation MUST be written in Vietnamese.
4. specialTerms: multi-word proper nouns, idioms and proverbs. vietnameseTranslation is the natural Vietnamese rendering of the term as it appears in your translation. category examples: Tên người, Địa danh, Công pháp, Thành ngữ. explanation in Vietnamese, without the Hán Việt reading.
5. translation: one complete, natural Vietnamese sentence with normal spacing between words. No Chinese characters may remain.
6. Pronouns: 我 -> "ta", 你 -> "ngươi", 他 -> "hắn", 她 -> "nàng".
7. Other proper nouns use their Sino-Vietnamese (Hán Việt) reading.
8. ABSOLUTE RULE: every Forced Sino Term listed by the user MUST be translated with its given sinoVietnamese reading."""

BATCH_TRANSLATE_SYSTEM_PROMPT = """You are an expert translator specializing in Chinese and Vietnamese. Translate a batch of Chinese sentences into Vietnamese.

## Input
A JSON array of Chinese sentences, optionally followed by a list of Forced Sino Terms.

## Output
Return ONE valid JSON object: {"translations": ["...", "..."]}
- translations[i] is the Vietnamese translation of input[i].
- Keep the order. The array MUST have exactly as many items as the input.

## Rules
1. ABSOLUTE RULE: every Forced Sino Term MUST be translated with its given sinoVietnamese reading.
2. Natural spacing between Vietnamese words ("Sư huynh có biết", never "Sư huynhcóbiết").
3. Pronouns: 我 -> "ta", 你 -> "ngươi", 他 -> "hắn", 她 -> "nàng".
4. Other proper nouns use their Sino-Vietnamese (Hán Việt) reading.
5. Return only the JSON object, no markdown or commentary."""


def build_prompt_with_forced_terms(base_prompt: str, forced_terms: ForcedTerms) -> str:
    """Append the Forced Sino Terms list to a user prompt."""
    if not forced_terms:
        return base_prompt
    terms = json.dumps(forced_terms, ensure_ascii=False)
    return f"{base_prompt}\n\nForced Sino Terms you must adhere to: {terms}"


def _parse_json_object(response: str) -> dict[str, Any]:
    if not response:
        raise ServiceError("API returned an empty response.")
    try:
        data = json.loads(response)
    except json.JSONDecodeError as e:
        raise ServiceError(f"API returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ServiceError("API returned JSON that is not an object.")
    return data


class AnalysisService:
    """AnalysisBackend backed by OpenAI-compatible chat completions."""

    def __init__(
        self,
        analysis_llm: Optional[LLMClient] = None,
        translation_llm: Optional[LLMClient] = None,
    ):
        self.analysis_llm = analysis_llm or LLMClient(task="analysis")
        self.translation_llm = translation_llm or LLMClient(task="translation")

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None, api_key: str = "") -> "AnalysisService":
        """Build a service, letting a user-supplied key override configured ones."""
        app_config = config or get_config()

        def effective(specific) -> LLMConfig:
            merged = get_effective_llm_config(specific, app_config.llm)
            if api_key:
                merged = merged.model_copy(update={"api_key": api_key})
            return merged

        return cls(
            analysis_llm=LLMClient(config=effective(app_config.analysis_llm)),
            translation_llm=LLMClient(config=effective(app_config.translation_llm)),
        )

    @property
    def has_credential(self) -> bool:
        return self.analysis_llm.has_credential and self.translation_llm.has_credential

    async def analyze_sentence(self, text: str, forced_terms: ForcedTerms) -> AnalyzedText:
        """Analyse one sentence into tokens, translation and special terms.

        Raises:
            ServiceError: On any request or parsing failure
        """
        prompt = build_prompt_with_forced_terms(
            f'Please analyze and translate this sentence: "{text}"', forced_terms
        )
        try:
            response = await self.analysis_llm.complete(
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.1,
            )
        except Exception as e:
            logger.error("analysis_request_failed", error=str(e))
            raise ServiceError(f"Analysis API error: {e}") from e

        data = _parse_json_object(response)
        if not data.get("tokens") or not data.get("translation"):
            raise ServiceError("Invalid JSON structure received from API.")
        try:
            return AnalyzedText.model_validate(data)
        except pydantic.ValidationError as e:
            raise ServiceError(f"Invalid analysis data received from API: {e}") from e

    async def translate_sentences_in_batch(
        self, texts: list[str], forced_terms: ForcedTerms
    ) -> list[str]:
        """Translate sentences in one request; results align with the input.

        Raises:
            ServiceError: On request failure or if the count of translations differs
        """
        if not texts:
            return []

        prompt = build_prompt_with_forced_terms(
            f"Please translate this batch of sentences: {json.dumps(texts, ensure_ascii=False)}",
            forced_terms,
        )
        try:
            response = await self.translation_llm.complete(
                system_prompt=BATCH_TRANSLATE_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.2,
            )
        except Exception as e:
            logger.error("translation_request_failed", error=str(e), batch=len(texts))
            raise ServiceError(f"Translation API error: {e}") from e

        data = _parse_json_object(response)
        translations = data.get("translations")
        if (
            not isinstance(translations, list)
            or len(translations) != len(texts)
            or not all(isinstance(t, str) for t in translations)
        ):
            raise ServiceError("Invalid or mismatched translation data received from API.")
        return translations

"""OpenAI-compatible LLM client wrapper."""

import asyncio
from typing import Any, Literal, Optional

import httpx
import structlog

from doc_truyen.config import LLMConfig, get_config, get_effective_llm_config

logger = structlog.get_logger()

TaskType = Literal["analysis", "translation", "default"]


class LLMClient:
    """OpenAI-compatible chat client returning JSON text."""

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        task: Optional[TaskType] = None,
    ):
        """Initialize the LLM client.

        Args:
            config: LLM configuration, takes precedence over task
            task: Task type used to pick the effective config when config is None
        """
        self.config = config or self._get_config_for_task(task or "default")
        self._client = None

    @staticmethod
    def _get_config_for_task(task: TaskType) -> LLMConfig:
        app_config = get_config()
        if task == "analysis":
            return get_effective_llm_config(app_config.analysis_llm, app_config.llm)
        if task == "translation":
            return get_effective_llm_config(app_config.translation_llm, app_config.llm)
        return app_config.llm

    @property
    def has_credential(self) -> bool:
        return bool(self.config.api_key)

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
            )
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_retries: int = 0,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> str:
        """Send a chat completion request.

        Analysis and translation calls are not idempotent, so the default is a
        single attempt; retry is left to the user.

        Args:
            system_prompt: System message content
            user_prompt: User message content
            max_retries: Extra attempts with exponential backoff
            temperature: Override temperature (uses config default if None)
            max_tokens: Override max tokens (uses config default if None)
            json_mode: Ask the endpoint for a JSON object response

        Returns:
            Generated text content (may be empty)
        """
        last_error: Optional[Exception] = None
        extra = {"response_format": {"type": "json_object"}} if json_mode else {}

        for attempt in range(max_retries + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=self.config.temperature if temperature is None else temperature,
                    max_tokens=max_tokens or self.config.max_tokens,
                    **extra,
                )
                return (response.choices[0].message.content or "").strip()

            except Exception as e:
                last_error = e
                if attempt < max_retries:
                    delay = 2**attempt
                    logger.warning("llm_retry", attempt=attempt + 1, error=str(e))
                    await asyncio.sleep(delay)

        raise last_error or RuntimeError("LLM request failed")

    def check_connection(self) -> dict[str, Any]:
        """Probe the endpoint's model list with the configured key.

        Returns:
            Dict with 'success' bool and 'message' string.
        """
        if not self.has_credential:
            return {"success": False, "message": "API key is not configured"}

        try:
            response = httpx.get(
                f"{self.config.base_url.rstrip('/')}/models",
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=10,
            )
        except httpx.HTTPError as e:
            return {"success": False, "message": str(e)}

        if response.status_code == 200:
            return {"success": True, "message": "Connection successful"}
        return {"success": False, "message": f"API returned {response.status_code}"}

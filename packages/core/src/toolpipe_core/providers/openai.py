from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from toolpipe_core.providers.base import BaseFixer


class OpenAIFixer(BaseFixer):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model_name: str | None = None, timeout: float = 120):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'toolpipe[openai]'"
            )
        super().__init__(model_name)
        self.client = _OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, prompt: str) -> str | None:
        response = self.client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        if response is None or not response.choices:
            return None
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise self._blocked("content_filter")
        return choice.message.content

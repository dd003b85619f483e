from __future__ import annotations

from toolpipe_core.providers.base import BaseFixer


class AnthropicFixer(BaseFixer):
    MODEL = "claude-sonnet-4-20250514"
    # Low temperature: the output is a whole source file, not prose.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model_name: str | None = None, timeout: float = 120):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'toolpipe[anthropic]'"
            )
        super().__init__(model_name)
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, prompt: str) -> str | None:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model_name,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        if response is None:
            return None
        if response.stop_reason == "refusal":
            raise self._blocked("refusal")
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks)

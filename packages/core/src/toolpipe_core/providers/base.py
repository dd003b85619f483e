"""Base fixer implementing the Template Method pattern.

All providers share the same generation contract:
    generate() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response, or None
    when the provider returned no usable response object

There is no retry here: one call per file per repair run. A caller that
wants another attempt resubmits the batch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from toolpipe_core.errors import GenerationError, SafetyBlockedError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 8192


class BaseFixer(ABC):
    MODEL: str = ""
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.2

    def __init__(self, model_name: str | None = None):
        self.model_name = model_name or self.MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def generate(self, prompt: str) -> str:
        """Run one generation and return the raw response text.

        Raises GenerationError (SafetyBlockedError for refusals) on any
        failure, including a missing response.
        """
        try:
            raw = self._call_api(prompt)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"{self.__class__.__name__} call failed: {e}") from e
        if raw is None:
            raise GenerationError(f"{self.__class__.__name__}: no response object received.")
        return raw

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str) -> str | None:
        """Make a single API call and return the raw text response."""

    # ------------------------------------------------------------------ #
    # Shared helpers                                                       #
    # ------------------------------------------------------------------ #

    def _blocked(self, reason: str) -> SafetyBlockedError:
        logger.warning("%s response blocked (%s) for model %s", self.__class__.__name__, reason, self.model_name)
        return SafetyBlockedError(f"Response blocked due to SAFETY ({reason}).")

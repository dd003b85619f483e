"""Process-wide dependencies of the HTTP app.

Config and broker are built once per process and shared by every request;
tests replace them through ``app.dependency_overrides``.
"""

from __future__ import annotations

import functools
import os

from toolpipe_core.config import load_config
from toolpipe_core.gh.auth import CredentialBroker
from toolpipe_core.lintfix import get_fixer


@functools.lru_cache(maxsize=1)
def get_config() -> dict:
    return load_config(os.environ.get("TOOLPIPE_CONFIG", ".toolpipe.yml"))


@functools.lru_cache(maxsize=1)
def _broker() -> CredentialBroker:
    return CredentialBroker(get_config())


def get_broker() -> CredentialBroker:
    return _broker()


def get_fixer_factory():
    """Return a callable ``(config, model_name) -> fixer``; overridden in tests."""
    return get_fixer

import copy
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repo_owner": "Online-Everything-Tool",
    "repo_name": "oet",
    "model": "anthropic",
    "model_name": None,  # None = provider default; a request may still override it
    "request_timeout": 15,  # seconds, every GitHub call
    "model_timeout": 120,  # seconds, one model call
    "lint_prompt_template": None,  # None = built-in template; set to a path string to override
    "telemetry_url": None,
    "deploy_preview_app": "netlify",
    "ci": {
        "workflow_runs_window": 75,
        "comment_limit": 10,
    },
    "recent_builds": {
        "open_window": 50,
        "closed_window": 50,
        "max_results": 10,
    },
    # Automation accounts that comment on tool PRs. Several automations may
    # share one login, so an optional body marker disambiguates them.
    "bot_identities": [
        {"name": "VPR", "login": "github-actions[bot]", "marker": "OET Tool PR Validation Status"},
        {"name": "ADM", "login": "github-actions[bot]", "marker": "AI Dependency Manager Results"},
        {"name": "ALF", "login": "github-actions[bot]", "marker": "AI Lint Fixer Results"},
        {"name": "PR_CREATOR_BOT", "login": "OET Bot", "marker": None},
        {"name": "Netlify", "login": "netlify[bot]", "marker": None},
    ],
}

BUILTIN_PROMPTS_DIR = Path(__file__).parent / "prompts"
_BUILTIN_LINT_TEMPLATE = BUILTIN_PROMPTS_DIR / "lint_fix.md"

# Environment variables that override values from the config file.
_ENV_OVERRIDES = {
    "GITHUB_REPO_OWNER": "repo_owner",
    "GITHUB_REPO_NAME": "repo_name",
    "TOOLPIPE_TELEMETRY_URL": "telemetry_url",
}


def load_config(config_path: str = ".toolpipe.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .toolpipe.yml in the current directory
      3. CLI argument overrides
      4. Environment variables (repository coordinates, credentials)
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        for key, value in file_config.items():
            # Nested sections are merged so a file can set one knob only.
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key].update(value)
            else:
                config[key] = value

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for env_name, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            config[key] = value

    # Resolve credentials from environment variables
    config["github_app_id"] = os.environ.get("GITHUB_APP_ID")
    config["github_private_key_base64"] = os.environ.get("GITHUB_PRIVATE_KEY_BASE64")
    config["github_private_key"] = os.environ.get("GITHUB_PRIVATE_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_lint_prompt_template(config: dict) -> str:
    """
    Load the lint-fix prompt template.

    If ``lint_prompt_template`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in template.
    """
    custom_path = config.get("lint_prompt_template")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Prompt template not found: {custom_path}")
        return p.read_text()

    if _BUILTIN_LINT_TEMPLATE.exists():
        return _BUILTIN_LINT_TEMPLATE.read_text()

    raise FileNotFoundError("No prompt template configured and built-in template is missing.")

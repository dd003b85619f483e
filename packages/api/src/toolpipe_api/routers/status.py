from __future__ import annotations

import importlib.metadata

from fastapi import APIRouter, Depends

from toolpipe_api.deps import get_config

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status")
def service_status(config: dict = Depends(get_config)):
    """Static service status; never calls GitHub or a model."""
    return {
        "status": "ok",
        "version": importlib.metadata.version("toolpipe"),
        "repository": f"{config['repo_owner']}/{config['repo_name']}",
        "features": {
            "githubApp": bool(config.get("github_app_id")),
            "lintFix": bool(config.get(f"{config.get('model')}_api_key")),
            "model": config.get("model"),
            "telemetry": bool(config.get("telemetry_url")),
        },
    }

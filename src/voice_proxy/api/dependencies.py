"""
FastAPI Dependency Providers.

The VoiceService is built once by the application factory and stored on
``app.state.service``; handlers receive it through Depends(get_service).

Settings resolution for the default application:
    1. VOICE_PROXY_SETTINGS, else config/settings.yaml
    2. A missing file falls back to defaults (plus environment overrides)
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import Request

from voice_proxy.core.config import Settings, apply_env_overrides, default_settings_path, load_settings
from voice_proxy.core.logging import get_logger, warn
from voice_proxy.services.voice_service import VoiceService

_LOG = get_logger("voice-proxy.api")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings."""
    path = default_settings_path()
    if not Path(path).exists():
        warn(_LOG, "settings_missing", path=str(path))
        return Settings(raw=apply_env_overrides({}))
    return load_settings(path)


def get_service(request: Request) -> VoiceService:
    return request.app.state.service

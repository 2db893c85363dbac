"""Centralised engine configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/tagalyst/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class DomConfig(BaseModel):
    """Attribute and class names shared with the host page and extension UI."""

    ext_attr: str = "data-ext-owned"
    toolbar_class: str = "ext-toolbar-row"
    message_attr: str = "data-message-author-role"
    message_id_attr: str = "data-message-id"
    collapsed_class: str = "ext-collapsed"


class HighlightConfig(BaseModel):
    """Overlay naming and the two highlight style buckets."""

    name_prefix: str = "tagalyst"
    plain_style: str = (
        "background: rgba(255, 242, 168, .9); border-radius: 3px; "
        "box-shadow: inset 0 0 0 1px rgba(255, 215, 64, .35);"
    )
    annotated_style: str = (
        "background: rgba(170, 240, 200, .85); border-radius: 3px; "
        "box-shadow: inset 0 0 0 1px rgba(60, 170, 120, .45);"
    )

    @field_validator("name_prefix")
    @classmethod
    def _prefix_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "HIGHLIGHT__NAME_PREFIX must not be blank"
            raise ValueError(msg)
        return value.strip()


class MenuConfig(BaseModel):
    """Floating selection menu geometry (pixels)."""

    width: float = 180.0
    height: float = 36.0
    edge_margin: float = 8.0
    gap: float = 12.0


class TooltipConfig(BaseModel):
    """Hover annotation tooltip geometry (pixels)."""

    width: float = 220.0
    height: float = 32.0
    margin: float = 14.0
    edge_margin: float = 8.0


class FrameConfig(BaseModel):
    """Animation-frame cadence for the asyncio frame scheduler."""

    frame_interval: float = 1 / 60


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Engine settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``DOM__EXT_ATTR``, ``HIGHLIGHT__NAME_PREFIX``, ``MENU__GAP``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    dom: DomConfig = DomConfig()
    highlight: HighlightConfig = HighlightConfig()
    menu: MenuConfig = MenuConfig()
    tooltip: TooltipConfig = TooltipConfig()
    frames: FrameConfig = FrameConfig()
    app: AppConfig = AppConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings

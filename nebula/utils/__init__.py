"""Utility helpers for the solve service."""

from .config_loader import (
    ConfigError,
    PromptTemplates,
    ServiceConfig,
    load_prompt_templates,
    load_service_config,
)
from .logger import configure_logging, get_logger

__all__ = [
    "ConfigError",
    "PromptTemplates",
    "ServiceConfig",
    "load_prompt_templates",
    "load_service_config",
    "configure_logging",
    "get_logger",
]

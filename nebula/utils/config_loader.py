"""Configuration loaders for service settings and the prompt templates."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import find_dotenv, load_dotenv


CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"
DEFAULT_SERVICE_CONFIG = CONFIG_DIR / "service.yml"
DEFAULT_PROMPTS_CONFIG = CONFIG_DIR / "prompts.yml"


@dataclass
class ServiceConfig:
    """Process-wide settings, built once at startup and passed to the app.

    Attributes:
        api_key: Gemini API key. Empty means requests fail with a config error.
        host: Bind host for API mode.
        port: Bind port for API mode.
        model: Gemini model identifier.
        api_base: Base URL of the Generative Language REST API.
        structured_output: Requests `application/json` output from the model.
        request_timeout_seconds: Timeout handed to the HTTP transport.
        max_body_bytes: Largest accepted request body.
        cors_origins: Origins allowed by the CORS middleware.
        log_level: Root log level.
        prompts_path: YAML file holding the prompt templates.
    """

    api_key: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    model: str = "gemini-2.0-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    structured_output: bool = True
    request_timeout_seconds: float = 120.0
    max_body_bytes: int = 10 * 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    prompts_path: str = str(DEFAULT_PROMPTS_CONFIG)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())


@dataclass
class PromptTemplates:
    template: str
    language_instructions: Dict[str, str]
    default_language: str = "en"
    default_problem: str = "Solve the math problem in the attached image."

    def instruction_for(self, language: Optional[str]) -> str:
        key = language or ""
        if key in self.language_instructions and key != self.default_language:
            return self.language_instructions[key]
        return self.language_instructions[self.default_language]


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be loaded or validated."""


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("Configuration file not found: {}".format(path))
    with path.open("r", encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError("Invalid YAML in {}: {}".format(path, exc)) from exc
    if not isinstance(loaded, dict):
        raise ConfigError("Configuration root must be a mapping in {}".format(path))
    return loaded


def _load_environment_variables() -> None:
    found = find_dotenv(filename=".env", usecwd=True)
    if found:
        load_dotenv(found, override=False)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_origins(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        items = [item.strip() for item in str(value or "").split(",")]
    return [item for item in items if item] or ["*"]


def load_service_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceConfig:
    """Builds the service configuration from YAML defaults and environment.

    Args:
        path: YAML file with `server`, `llm`, `cors` and `logging` sections.
            Defaults to the packaged `configs/service.yml`.
        environ: Environment mapping. When omitted, `.env` is loaded and
            `os.environ` is used.

    Returns:
        A populated `ServiceConfig`.

    Raises:
        ConfigError: If the YAML file is missing or malformed, or a numeric
            setting cannot be parsed.
    """
    if environ is None:
        _load_environment_variables()
        environ = os.environ

    data = _load_yaml(Path(path) if path else DEFAULT_SERVICE_CONFIG)
    server = dict(data.get("server", {}) or {})
    llm = dict(data.get("llm", {}) or {})
    cors = dict(data.get("cors", {}) or {})
    logging_section = dict(data.get("logging", {}) or {})
    defaults = ServiceConfig()

    try:
        return ServiceConfig(
            api_key=str(environ.get("GEMINI_API_KEY") or "").strip(),
            host=str(environ.get("HOST") or server.get("host", defaults.host)),
            port=int(environ.get("PORT") or server.get("port", defaults.port)),
            model=str(environ.get("GEMINI_MODEL") or llm.get("model", defaults.model)),
            api_base=str(environ.get("GEMINI_API_BASE") or llm.get("api_base", defaults.api_base)).rstrip("/"),
            structured_output=_parse_bool(
                environ.get("GEMINI_STRUCTURED_OUTPUT", llm.get("structured_output", defaults.structured_output))
            ),
            request_timeout_seconds=float(llm.get("request_timeout_seconds", defaults.request_timeout_seconds)),
            max_body_bytes=int(environ.get("MAX_BODY_BYTES") or server.get("max_body_bytes", defaults.max_body_bytes)),
            cors_origins=_parse_origins(environ.get("CORS_ORIGINS") or cors.get("origins", defaults.cors_origins)),
            log_level=str(environ.get("LOG_LEVEL") or logging_section.get("level", defaults.log_level)).upper(),
            prompts_path=str(llm.get("prompts_path") or defaults.prompts_path),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError("Invalid service configuration: {}".format(exc)) from exc


def load_prompt_templates(path: Optional[str] = None) -> PromptTemplates:
    data = _load_yaml(Path(path) if path else DEFAULT_PROMPTS_CONFIG)
    solver = data.get("solver", {})
    if not isinstance(solver, dict) or not str(solver.get("template", "")).strip():
        raise ConfigError("'solver.template' is required in prompts configuration")

    languages = solver.get("languages", {})
    if not isinstance(languages, dict) or not languages:
        raise ConfigError("'solver.languages' must be a non-empty mapping")
    instructions = {str(key).strip().lower(): str(value).strip() for key, value in languages.items()}

    default_language = str(solver.get("default_language", "en")).strip().lower()
    if default_language not in instructions:
        raise ConfigError("Default language '{}' has no instruction".format(default_language))

    return PromptTemplates(
        template=str(solver["template"]),
        language_instructions=instructions,
        default_language=default_language,
        default_problem=str(solver.get("default_problem") or PromptTemplates.default_problem).strip(),
    )

"""Gemini access: prompt building, invocation and reply normalization."""

from .client import GeminiClient, TransportError, UpstreamResponseError
from .normalizer import NormalizedResult, extract_json_object, normalize_response, parse_retry_delay
from .prompts import build_model_payload, build_prompt

__all__ = [
    "GeminiClient",
    "TransportError",
    "UpstreamResponseError",
    "NormalizedResult",
    "extract_json_object",
    "normalize_response",
    "parse_retry_delay",
    "build_model_payload",
    "build_prompt",
]

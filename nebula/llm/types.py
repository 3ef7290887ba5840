"""Typed contracts for Gemini request payloads and replies."""

from __future__ import annotations

from typing import Any, Dict, List, TypedDict


class InlineData(TypedDict):
    mime_type: str
    data: str


class ContentPart(TypedDict, total=False):
    text: str
    inline_data: InlineData


class Content(TypedDict, total=False):
    role: str
    parts: List[ContentPart]


class GenerationConfig(TypedDict, total=False):
    response_mime_type: str


class ModelPayload(TypedDict, total=False):
    contents: List[Content]
    generation_config: GenerationConfig


class UpstreamError(TypedDict, total=False):
    code: int
    message: str
    status: str
    details: List[Dict[str, Any]]


class Candidate(TypedDict, total=False):
    content: Content
    finishReason: str


class ModelResponse(TypedDict, total=False):
    error: UpstreamError
    candidates: List[Candidate]

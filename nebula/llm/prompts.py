"""Prompt and payload construction for the Gemini solve call."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from nebula.llm.types import Content, ContentPart, ModelPayload
from nebula.utils.config_loader import PromptTemplates

IMAGE_MIME_TYPE = "image/jpeg"
JSON_MIME_TYPE = "application/json"


def _render_prompt_template(template: str, context: Dict[str, Any]) -> str:
    """Replaces `{{name}}` placeholders, leaving literal JSON braces intact."""
    rendered = template
    for key, value in context.items():
        if isinstance(value, (dict, list)):
            text = json.dumps(value, ensure_ascii=False)
        else:
            text = str(value)
        rendered = rendered.replace("{{" + key + "}}", text)
    return rendered


def build_prompt(text: Optional[str], language: Optional[str], templates: PromptTemplates) -> str:
    """Builds the tutor prompt for one problem.

    Args:
        text: Problem statement; blank or missing means "see the image".
        language: `"hi"` selects the Hindi/English instruction, anything else English.
        templates: Loaded prompt templates.

    Returns:
        The rendered prompt string.
    """
    problem = text if text and text.strip() else templates.default_problem
    return _render_prompt_template(
        templates.template,
        {
            "language_instruction": templates.instruction_for(language),
            "problem": problem,
        },
    )


def build_model_payload(
    text: Optional[str],
    image: Optional[str],
    language: Optional[str],
    templates: PromptTemplates,
    structured_output: bool = True,
) -> ModelPayload:
    """Builds the `generateContent` request body.

    Args:
        text: Problem statement.
        image: Base64 image data, passed through unmodified.
        language: Language preference.
        templates: Loaded prompt templates.
        structured_output: Asks the model for `application/json` output.

    Returns:
        A single-content payload: text part first, inline image second.
    """
    parts: list[ContentPart] = [{"text": build_prompt(text, language, templates)}]
    if image:
        parts.append({"inline_data": {"mime_type": IMAGE_MIME_TYPE, "data": image}})

    content: Content = {"parts": parts}
    payload: ModelPayload = {"contents": [content]}
    if structured_output:
        payload["generation_config"] = {"response_mime_type": JSON_MIME_TYPE}
    return payload

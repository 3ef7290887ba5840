"""Classification and JSON recovery for Gemini replies.

The model is only loosely held to the JSON contract, so the text of the first
candidate goes through an ordered list of parsing strategies. The first one
that yields a JSON object wins; when all fail the raw text is returned so the
client can still show something.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from nebula.llm.types import ModelResponse
from nebula.utils.logger import get_logger

logger = get_logger("nebula.llm.normalizer")

DEFAULT_RETRY_SECONDS = 45
RATE_LIMIT_MESSAGE = "AI Core cooling down."
NO_CANDIDATES_MESSAGE = "AI could not process this request."

OUTCOME_PARSED = "parsed_steps"
OUTCOME_RAW = "raw_fallback"
OUTCOME_NO_CANDIDATES = "no_candidates"
OUTCOME_RATE_LIMITED = "rate_limited"

_RETRY_IN_PATTERN = re.compile(r"retry in\s+(\d+(?:\.\d+)?)\s*s", flags=re.IGNORECASE)
_RETRY_DELAY_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*s\s*$")
_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"


class MalformedEnvelopeError(ValueError):
    """Raised when a candidate exists but carries no text part."""


@dataclass
class NormalizedResult:
    outcome: str
    status_code: int
    body: Dict[str, Any]


def _reject_constant(name: str) -> Any:
    raise ValueError("non-standard JSON constant {}".format(name))


def _finite_float(literal: str) -> float:
    value = float(literal)
    if math.isinf(value):
        raise ValueError("float literal out of range: {}".format(literal))
    return value


def _loads(text: str) -> Any:
    # NaN/Infinity are not JSON and cannot be sent back to the client.
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def _parse_direct(text: str) -> Any:
    return _loads(text)


def _parse_without_fences(text: str) -> Any:
    return _loads(text.replace("```json", "").replace("```", "").strip())


def _parse_outer_braces(text: str) -> Any:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no brace-delimited object in model text")
    # Models sometimes put literal newlines inside string values.
    candidate = text[start : end + 1].replace("\r", " ").replace("\n", " ")
    return _loads(candidate)


PARSING_STRATEGIES: List[Tuple[str, Callable[[str], Any]]] = [
    ("direct", _parse_direct),
    ("strip_fences", _parse_without_fences),
    ("outer_braces", _parse_outer_braces),
]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Recovers a JSON object from free-form model output.

    Args:
        text: Model text.

    Returns:
        The parsed object, or None when no strategy yields one.
    """
    for name, strategy in PARSING_STRATEGIES:
        try:
            parsed = strategy(text)
        except (ValueError, RecursionError):
            continue
        if isinstance(parsed, dict):
            logger.debug("json_extracted strategy=%s", name)
            return parsed
    return None


def parse_retry_delay(error: Dict[str, Any]) -> int:
    """Best-effort retry hint, in whole seconds, from a 429 error object.

    The human-readable message is checked first ("Please retry in 12.3s."),
    then a `google.rpc.RetryInfo` detail. Anything unparsable falls back to
    `DEFAULT_RETRY_SECONDS`.
    """
    match = _RETRY_IN_PATTERN.search(str(error.get("message") or ""))
    if match:
        return max(0, math.ceil(float(match.group(1))))

    details = error.get("details")
    if isinstance(details, list):
        for detail in details:
            if not isinstance(detail, dict) or detail.get("@type") != _RETRY_INFO_TYPE:
                continue
            delay = _RETRY_DELAY_PATTERN.match(str(detail.get("retryDelay") or ""))
            if delay:
                return max(0, math.ceil(float(delay.group(1))))
    return DEFAULT_RETRY_SECONDS


def _is_rate_limited(error: Any) -> bool:
    if not isinstance(error, dict):
        return False
    try:
        return int(error.get("code")) == 429
    except (TypeError, ValueError):
        return False


def first_candidate_text(response: ModelResponse) -> str:
    """Returns `candidates[0].content.parts[0].text`.

    Raises:
        MalformedEnvelopeError: If the first candidate has no text part.
    """
    candidate = response["candidates"][0]
    try:
        text = candidate["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        finish_reason = candidate.get("finishReason") if isinstance(candidate, dict) else None
        raise MalformedEnvelopeError(
            "First candidate has no text part (finishReason={})".format(finish_reason)
        ) from exc
    if not isinstance(text, str):
        raise MalformedEnvelopeError("First candidate text is {}, not a string".format(type(text).__name__))
    return text


def normalize_response(response: ModelResponse) -> NormalizedResult:
    """Classifies a decoded Gemini reply into the client-facing result.

    Order: rate limit, no candidates, then JSON recovery from the first
    candidate's text.

    Args:
        response: Decoded upstream reply.

    Returns:
        The result body and the HTTP status to send it with.

    Raises:
        MalformedEnvelopeError: If a candidate is present but has no text.
    """
    error = response.get("error")
    if _is_rate_limited(error):
        retry_in = parse_retry_delay(error)  # type: ignore[arg-type]
        logger.warning("upstream_rate_limited retry_in=%s", retry_in)
        return NormalizedResult(
            outcome=OUTCOME_RATE_LIMITED,
            status_code=429,
            body={"rate_limit": True, "retry_in": retry_in, "raw": RATE_LIMIT_MESSAGE},
        )

    candidates = response.get("candidates")
    if not candidates:
        if isinstance(error, dict):
            logger.error(
                "upstream_error code=%s status=%s message=%s",
                error.get("code"),
                error.get("status"),
                error.get("message"),
            )
        else:
            logger.warning("upstream_no_candidates keys=%s", sorted(response.keys()))
        return NormalizedResult(outcome=OUTCOME_NO_CANDIDATES, status_code=200, body={"raw": NO_CANDIDATES_MESSAGE})

    raw_text = first_candidate_text(response)
    parsed = extract_json_object(raw_text)
    if parsed is None:
        logger.warning("model_output_unparsable length=%d", len(raw_text))
        return NormalizedResult(outcome=OUTCOME_RAW, status_code=200, body={"raw": raw_text})
    return NormalizedResult(outcome=OUTCOME_PARSED, status_code=200, body=parsed)

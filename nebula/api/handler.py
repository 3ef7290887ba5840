"""Solve request handler shared by the HTTP route and the CLI."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from nebula.llm.client import GeminiClient
from nebula.llm.normalizer import NormalizedResult, normalize_response
from nebula.llm.prompts import build_model_payload
from nebula.utils.config_loader import PromptTemplates, ServiceConfig
from nebula.utils.logger import get_logger

logger = get_logger("nebula.api.handler")

CONFIG_ERROR_MESSAGE = "Server Error: API Key not configured on Render."
INTERNAL_ERROR_MESSAGE = "Internal Server Error during processing."

OUTCOME_CONFIG_ERROR = "config_error"
OUTCOME_SERVER_ERROR = "server_error"


@dataclass
class SolveInput:
    """One solve request as received from a client."""

    text: Optional[str] = None
    image: Optional[str] = None
    language: Optional[str] = None


class SolveHandler:
    """Runs one request from key check to normalized result.

    Every path ends in exactly one `NormalizedResult`; `handle` never raises.
    """

    def __init__(self, config: ServiceConfig, templates: PromptTemplates, client: GeminiClient) -> None:
        self.config = config
        self.templates = templates
        self.client = client

    async def handle(self, request: SolveInput, request_id: str = "-") -> NormalizedResult:
        """Solves one problem.

        Args:
            request: Problem text, base64 image and language preference.
            request_id: Correlation id echoed into log lines.

        Returns:
            The result body with its HTTP status.
        """
        log_extra = {"extra": {"request_id": request_id}}
        if not self.config.has_api_key:
            logger.error("solve_rejected request_id=%s reason=missing_api_key", request_id, extra=log_extra)
            return NormalizedResult(
                outcome=OUTCOME_CONFIG_ERROR,
                status_code=500,
                body={"raw": CONFIG_ERROR_MESSAGE},
            )

        started_at = time.perf_counter()
        logger.info(
            "solve_start request_id=%s has_text=%s has_image=%s language=%s",
            request_id,
            bool((request.text or "").strip()),
            bool(request.image),
            request.language or "default",
            extra=log_extra,
        )
        try:
            payload = build_model_payload(
                text=request.text,
                image=request.image,
                language=request.language,
                templates=self.templates,
                structured_output=self.config.structured_output,
            )
            response = await self.client.generate(payload)
            result = normalize_response(response)
        except Exception as exc:
            logger.exception("solve_failed request_id=%s error=%s", request_id, exc, extra=log_extra)
            return NormalizedResult(
                outcome=OUTCOME_SERVER_ERROR,
                status_code=500,
                body={"raw": INTERNAL_ERROR_MESSAGE},
            )

        logger.info(
            "solve_done request_id=%s outcome=%s status=%s elapsed_ms=%.1f",
            request_id,
            result.outcome,
            result.status_code,
            (time.perf_counter() - started_at) * 1000.0,
            extra=log_extra,
        )
        return result

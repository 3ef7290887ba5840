"""HTTP client for the Gemini `generateContent` endpoint."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from nebula.llm.types import ModelPayload, ModelResponse
from nebula.utils.config_loader import ServiceConfig
from nebula.utils.logger import get_logger

logger = get_logger("nebula.llm.client")


class TransportError(RuntimeError):
    """Raised when the upstream API cannot be reached."""


class UpstreamResponseError(RuntimeError):
    """Raised when the upstream reply body is not a JSON object."""


class GeminiClient:
    """Performs one `generateContent` call per solve request.

    No retries are attempted; rate limiting is reported in the decoded reply
    and classified by the caller.
    """

    def __init__(self, config: ServiceConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """Builds a client bound to one model and API key.

        Args:
            config: Service configuration holding key, model and endpoint.
            transport: Optional httpx transport, used by tests to stub the upstream.
        """
        self.config = config
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return "{}/models/{}:generateContent".format(self.config.api_base.rstrip("/"), self.config.model)

    def describe(self) -> Dict[str, Any]:
        return {
            "provider": "gemini",
            "model": self.config.model,
            "endpoint": self.endpoint,
            "structured_output": self.config.structured_output,
            "api_key_present": self.config.has_api_key,
        }

    async def generate(self, payload: ModelPayload) -> ModelResponse:
        """Sends the payload and returns the decoded reply.

        Error replies (4xx/5xx) are returned as decoded bodies, not raised, so
        that `error.code` can be classified downstream.

        Args:
            payload: Request body built by `build_model_payload`.

        Returns:
            The decoded upstream JSON object.

        Raises:
            TransportError: On connection, timeout or protocol failures.
            UpstreamResponseError: If the body is not a JSON object.
        """
        started_at = time.perf_counter()
        logger.info("gemini_call_start endpoint=%s", self.endpoint)
        try:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": self.config.api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            elapsed_ms = (time.perf_counter() - started_at) * 1000.0
            logger.error(
                "gemini_call_failed endpoint=%s elapsed_ms=%.1f error=%s",
                self.endpoint,
                elapsed_ms,
                type(exc).__name__,
            )
            raise TransportError("Could not reach Gemini API: {}".format(type(exc).__name__)) from exc

        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        logger.info(
            "gemini_call_done endpoint=%s status=%s elapsed_ms=%.1f",
            self.endpoint,
            response.status_code,
            elapsed_ms,
        )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamResponseError(
                "Gemini API returned a non-JSON body with status {}".format(response.status_code)
            ) from exc
        if not isinstance(body, dict):
            raise UpstreamResponseError("Gemini API returned a JSON {} instead of an object".format(type(body).__name__))
        return body  # type: ignore[return-value]

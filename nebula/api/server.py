"""REST interface for the solve service."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from nebula.api.handler import INTERNAL_ERROR_MESSAGE, SolveHandler, SolveInput
from nebula.llm.client import GeminiClient
from nebula.utils.config_loader import PromptTemplates, ServiceConfig, load_prompt_templates, load_service_config
from nebula.utils.logger import get_logger

logger = get_logger("nebula.api")

PAYLOAD_TOO_LARGE_MESSAGE = "Payload too large."
INVALID_BODY_MESSAGE = "Invalid request body."


class SolveRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Optional[str] = Field(default=None, description="Problem statement")
    image: Optional[str] = Field(default=None, description="Base64 image payload (JPEG)")
    language: Optional[str] = Field(default=None, description="'hi' for Hindi/English, anything else for English")


def create_app(
    config: Optional[ServiceConfig] = None,
    client: Optional[GeminiClient] = None,
    templates: Optional[PromptTemplates] = None,
) -> FastAPI:
    """Builds and configures the FastAPI application.

    Args:
        config: Service configuration. Loaded from YAML/environment when omitted.
        client: Gemini client. Built from `config` when omitted.
        templates: Prompt templates. Loaded from `config.prompts_path` when omitted.

    Returns:
        Configured FastAPI app instance.
    """
    config = config or load_service_config()
    templates = templates or load_prompt_templates(config.prompts_path)
    client = client or GeminiClient(config)
    handler = SolveHandler(config=config, templates=templates, client=client)

    app = FastAPI(title="Nebula Solver API", version="0.1.0")
    app.state.config = config
    app.state.handler = handler

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                too_large = int(declared) > config.max_body_bytes
            except ValueError:
                too_large = False
            if too_large:
                logger.warning("request_rejected reason=payload_too_large content_length=%s", declared)
                return JSONResponse(status_code=413, content={"raw": PAYLOAD_TOO_LARGE_MESSAGE})
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("request_rejected reason=invalid_body path=%s errors=%d", request.url.path, len(exc.errors()))
        return JSONResponse(status_code=400, content={"raw": INVALID_BODY_MESSAGE})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_failed path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"raw": INTERNAL_ERROR_MESSAGE})

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/solve")
    async def solve(payload: SolveRequest, request: Request) -> JSONResponse:
        request_id = request.headers.get("X-Request-ID", "-")
        result = await handler.handle(
            SolveInput(text=payload.text, image=payload.image, language=payload.language),
            request_id=request_id,
        )
        return JSONResponse(status_code=result.status_code, content=result.body)

    logger.info("app_ready llm=%s", client.describe())
    return app

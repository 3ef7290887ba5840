"""CLI/API entrypoint for the solve service."""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
from pathlib import Path
from typing import Optional

import uvicorn

from nebula.api import SolveHandler, SolveInput, create_app
from nebula.llm import GeminiClient
from nebula.utils.config_loader import ServiceConfig, load_prompt_templates, load_service_config
from nebula.utils.logger import configure_logging


def build_parser() -> argparse.ArgumentParser:
    """Builds CLI argument parser for app entrypoints.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(description="Nebula Solver")
    parser.add_argument("--mode", choices=["cli", "api"], default="api")
    parser.add_argument("--config", type=str, default=None, help="Service YAML (defaults to the packaged one)")
    parser.add_argument("--text", type=str, default="", help="Problem statement (cli mode)")
    parser.add_argument("--image-path", type=str, default=None, help="Image of the problem (cli mode)")
    parser.add_argument("--language", type=str, default=None, help="'hi' for Hindi/English output")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    return parser


def encode_image_file(path: str) -> str:
    return base64.b64encode(Path(path).expanduser().read_bytes()).decode("ascii")


def run_cli(
    config: ServiceConfig,
    text: str,
    image_path: Optional[str] = None,
    language: Optional[str] = None,
    client: Optional[GeminiClient] = None,
) -> int:
    """Solves one problem and prints the normalized JSON result.

    Args:
        config: Service configuration.
        text: Problem statement.
        image_path: Optional image file, sent as base64.
        language: Language preference.
        client: Optional Gemini client override.

    Returns:
        Process exit code: 0 for HTTP-200 outcomes, 1 otherwise.

    Raises:
        ValueError: If neither text nor image is provided.
    """
    if not text.strip() and not image_path:
        raise ValueError("--text or --image-path is required in cli mode")

    handler = SolveHandler(
        config=config,
        templates=load_prompt_templates(config.prompts_path),
        client=client or GeminiClient(config),
    )
    image = encode_image_file(image_path) if image_path else None
    result = asyncio.run(handler.handle(SolveInput(text=text, image=image, language=language), request_id="cli"))

    print(json.dumps(result.body, ensure_ascii=False, indent=2))
    return 0 if result.status_code == 200 else 1


def run_api(config: ServiceConfig) -> int:
    """Runs FastAPI server using Uvicorn.

    Args:
        config: Service configuration with bind host and port.

    Returns:
        Process exit code.
    """
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Application entrypoint for CLI and API modes.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    config = load_service_config(args.config)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level.upper()
    configure_logging(config.log_level)

    if args.mode == "cli":
        return run_cli(config, text=args.text, image_path=args.image_path, language=args.language)
    return run_api(config)


if __name__ == "__main__":
    raise SystemExit(main())

# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
LLM Gateway - Main entry point.

This module handles:
- CLI argument parsing
- Logging configuration
- One-shot health check mode
- Application startup

The actual FastAPI application is created via app_factory.create_app().
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

import colorlog
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from llm_gateway.core.errors import mask_credential

STATUS_STYLES = {
    "operational": "green",
    "limited": "yellow",
    "unknown": "dim",
    "error": "red",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LLM Gateway Server")
    parser.add_argument(
        "--host", type=str, default="0.0.0.0", help="Host to bind the server to."
    )
    parser.add_argument("--port", type=int, default=8000, help="Port to run the server on.")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for gateway.log / gateway_debug.log (default: ./logs).",
    )
    parser.add_argument(
        "--check-health",
        action="store_true",
        help="Probe every available model once, print a status table and exit.",
    )
    parser.add_argument(
        "--model",
        action="append",
        default=None,
        help="With --check-health, probe only this model (repeatable).",
    )
    return parser


def load_env_files(root_dir: Path) -> List[Path]:
    """Load .env, then any other *.env files without overriding."""
    load_dotenv(root_dir / ".env")
    env_files = sorted(root_dir.glob("*.env"))
    for env_file in env_files:
        if env_file.name != ".env":
            load_dotenv(env_file, override=False)
    return env_files


class GatewayDebugFilter(logging.Filter):
    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith("llm_gateway")


def configure_logging(log_dir: Path) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    # File handlers
    file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    info_file_handler = logging.FileHandler(log_dir / "gateway.log", encoding="utf-8")
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(file_format)

    debug_file_handler = logging.FileHandler(log_dir / "gateway_debug.log", encoding="utf-8")
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_format)
    debug_file_handler.addFilter(GatewayDebugFilter())

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(info_file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(debug_file_handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run_health_check(console: Console, models: Optional[List[str]] = None) -> int:
    """Probe models once without inter-model delay. Returns a process exit code."""
    from dataclasses import replace

    from llm_gateway import HealthChecker, ProviderManager

    async with ProviderManager.from_env() as manager:
        settings = replace(manager.settings.health, model_delay=0.0)
        checker = HealthChecker(manager, settings)

        with console.status("[dim]Probing models...", spinner="dots"):
            if models:
                for model_id in models:
                    await checker.test_model(model_id)
            else:
                await checker.check_all_models()

    records = sorted(checker.get_status(), key=lambda r: r.model_id)
    table = Table(title="Model health")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", overflow="fold")
    for record in records:
        style = STATUS_STYLES.get(record.status.value, "")
        table.add_row(
            record.model_id,
            f"[{style}]{record.status.value}[/{style}]" if style else record.status.value,
            f"{record.latency_ms} ms" if record.latency_ms is not None else "-",
            str(record.attempts),
            record.last_error or "",
        )
    console.print(table)

    if not records:
        console.print("[bold red]No models available. Check provider configuration.[/bold red]")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    root_dir = Path.cwd()
    env_files = load_env_files(root_dir)
    if env_files:
        print(f"📁 Loaded {len(env_files)} .env file(s): {', '.join(f.name for f in env_files)}")

    configure_logging(args.log_dir or root_dir / "logs")
    console = Console()

    if args.check_health:
        return asyncio.run(run_health_check(console, args.model))

    gateway_api_key = os.getenv("GATEWAY_API_KEY")
    key_display = (
        f"✓ {mask_credential(gateway_api_key)}"
        if gateway_api_key
        else "✗ Not Set (INSECURE - anyone can access!)"
    )

    print("━" * 70)
    print(f"Starting gateway on {args.host}:{args.port}")
    print(f"Gateway API Key: {key_display}")
    print("━" * 70)

    start_time = time.time()
    with console.status("[dim]Loading FastAPI application...", spinner="dots"):
        import uvicorn

        from gateway_app.app_factory import create_app

        app = create_app()
    print(f"✓ Server ready in {time.time() - start_time:.2f}s")

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())

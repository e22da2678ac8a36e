"""Command-line interface for execterm.

Provides the main entry point for running a source file on the
execution backend, either interactively over a WebSocket session or as
a one-shot HTTP request, and for printing language starter templates.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from execterm.domain.models import Language, SessionState

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="execterm",
        description="Run code on a remote execution backend from your terminal",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/execterm.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    languages = [language.value for language in Language]

    run_parser = subparsers.add_parser("run", help="Run a source file")
    run_parser.add_argument("file", type=Path, help="Source file to run")
    run_parser.add_argument(
        "-l", "--language", choices=languages, default=None,
        help="Language of the file (default: inferred from its suffix)",
    )
    run_parser.add_argument(
        "--batch", action="store_true",
        help="Run to completion over HTTP without forwarding keystrokes",
    )

    template_parser = subparsers.add_parser("template", help="Print a starter program")
    template_parser.add_argument("language", choices=languages)

    subparsers.add_parser("languages", help="List supported languages")

    return parser.parse_args(argv)


def _build_controller(settings):
    """Wire a SessionController from configuration."""
    from execterm.protocol.codec import MessageCodec
    from execterm.session.controller import SessionController
    from execterm.session.output_log import OutputLog
    from execterm.transport.websocket import WebSocketConnectionFactory

    backend = settings.backend
    factory = WebSocketConnectionFactory(
        url=backend.url,
        token=backend.token.get_secret_value() or None,
        token_param=backend.token_param,
        open_timeout=backend.open_timeout,
    )
    return SessionController(
        connection_factory=factory,
        codec=MessageCodec(backspace_code=settings.terminal.backspace_code),
        output=OutputLog(exit_label=settings.terminal.exit_label),
        restart_policy=settings.session.restart_policy,
        language=settings.session.default_language,
        stopped_label=settings.terminal.stopped_label,
    )


def _resolve_language(path: Path, explicit: str | None, default: Language) -> Language:
    from execterm.languages import detect_language

    if explicit:
        return Language(explicit)
    try:
        return detect_language(path)
    except ValueError as e:
        logger.warning("%s, assuming %s", e, default.value)
        return default


async def _run_interactive(settings, code: str, language: Language) -> SessionState:
    """Run code over a WebSocket session attached to this terminal."""
    from execterm.console import TerminalConsole

    controller = _build_controller(settings)
    console = TerminalConsole(controller)
    try:
        return await console.run(code, language)
    finally:
        controller.dispose()


async def _run_batch(settings, code: str, language: Language) -> bool:
    """Run code once over HTTP and print its output."""
    from execterm.batch.http_runner import BatchRunError, HttpBatchRunner

    async with HttpBatchRunner(
        base_url=settings.backend.http_base_url,
        timeout=settings.backend.http_timeout,
    ) as runner:
        try:
            output = await runner.run(code, language)
        except BatchRunError as e:
            print(f"Error: {e}", file=sys.stderr)
            return False
    print(output, end="" if output.endswith("\n") else "\n")
    return True


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the execterm CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    if args.command == "template":
        from execterm.languages import template_for

        print(template_for(args.language), end="")
        return

    if args.command == "languages":
        from execterm.languages import main_file_name

        for language in Language:
            print(f"{language.value:<12} {main_file_name(language)}")
        return

    from execterm.config.settings import load_settings
    from execterm.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "run":
        try:
            code = args.file.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Cannot read {args.file}: {e}", file=sys.stderr)
            sys.exit(2)
        language = _resolve_language(args.file, args.language, settings.session.default_language)

        if args.batch:
            logger.info("Batch run of %s as %s", args.file, language.value)
            ok = asyncio.run(_run_batch(settings, code, language))
        else:
            logger.info("Interactive run of %s as %s", args.file, language.value)
            state = asyncio.run(_run_interactive(settings, code, language))
            ok = state is SessionState.COMPLETED
        sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()

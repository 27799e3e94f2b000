"""CLI entrypoints for weeknote commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List

from .config import ConfigError, build_generator_config, load_config
from .generator import GenerateOptions, ReportGenerator
from .llm.errors import GeneratorError
from .llm.registry import DEFAULT_REGISTRY
from .logging import configure_logging
from .models import ValidationWarning
from .parsing.daily_log import parse_daily_log, validate_daily_log
from .stores import PromptTemplateStore, StoreError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_input_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "file",
        nargs="?",
        default="-",
        help="Daily log file to read (defaults to stdin).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weeknote",
        description="Turn daily work logs into a structured weekly report.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yml or its directory (defaults to ~/.weeknote).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a weekly report from a daily log.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_input_argument(generate_parser)
    generate_parser.add_argument(
        "--model",
        default=None,
        help="Model id to use, e.g. deepseek/deepseek-chat (see `weeknote models`).",
    )
    generate_parser.add_argument(
        "--stream",
        action="store_true",
        help="Print the report as it is generated.",
    )
    generate_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write the report Markdown to this file.",
    )

    validate_parser = subparsers.add_parser(
        "validate",
        help="Check a daily log for formatting problems.",
    )
    _add_verbose_option(validate_parser, suppress_default=True)
    _add_input_argument(validate_parser)

    models_parser = subparsers.add_parser(
        "models",
        help="List the available models.",
    )
    _add_verbose_option(models_parser, suppress_default=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for weeknote commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "generate":
        _run_generate(parser, args)
    elif args.command == "validate":
        _run_validate(parser, args)
    elif args.command == "models":
        _run_models()
    elif args.command == "serve":
        from .service import run_service

        run_service(args.host, args.port, config_path=args.config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_generate(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    text = _read_input(parser, args.file)
    validation = validate_daily_log(text)
    if not validation.valid:
        parser.exit(1, f"{validation.error}\n")
    _print_warnings(validation.warnings)

    if args.model is not None and not DEFAULT_REGISTRY.is_valid_model_id(args.model):
        parser.exit(1, f"Unknown model id: {args.model}. Run `weeknote models` to list them.\n")

    try:
        config = load_config(args.config)
        generator_config = build_generator_config(config, args.model)
        template = PromptTemplateStore(config.resolved_data_dir).get_active()
    except (ConfigError, StoreError) as exc:
        parser.exit(1, f"{exc}\n")

    weekly_log = parse_daily_log(text)
    options = GenerateOptions(custom_template=template.as_custom())
    generator = ReportGenerator()

    try:
        if args.stream:
            result = asyncio.run(
                generator.generate_report_stream(
                    weekly_log, generator_config, _write_chunk, options
                )
            )
            sys.stdout.write("\n")
        else:
            result = asyncio.run(
                generator.generate_report(weekly_log, generator_config, options)
            )
            print(result.report.raw_markdown)
    except GeneratorError as exc:
        parser.exit(
            1, f"weeknote generate failed: {exc}\nRun with --verbose for more details.\n"
        )

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(result.report.raw_markdown, encoding="utf-8")
        print(f"Report written to {_relativize(args.output)}", file=sys.stderr)
    print(f"Generated with {result.model_name}", file=sys.stderr)


def _run_validate(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    text = _read_input(parser, args.file)
    validation = validate_daily_log(text)
    if not validation.valid:
        parser.exit(1, f"{validation.error}\n")
    weekly_log = parse_daily_log(text)
    _print_warnings(validation.warnings)
    print(f"Daily log OK: {len(weekly_log)} day(s) parsed")


def _run_models() -> None:
    for meta in DEFAULT_REGISTRY.all():
        marker = " [free]" if meta.is_free else ""
        print(f"{meta.id:<28} {meta.display_name}{marker}")


def _read_input(parser: argparse.ArgumentParser, file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    path = Path(file)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        parser.exit(1, f"Unable to read {file}: {exc.strerror or exc}\n")


def _print_warnings(warnings: List[ValidationWarning]) -> None:
    for warning in warnings:
        print(f"warning: {warning.message}", file=sys.stderr)
        if warning.suggestion:
            print(f"  hint: {warning.suggestion}", file=sys.stderr)


def _write_chunk(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])

"""
Command-line entry points.

``validate-protocol <path>``
    Exit 0 when valid, 1 when invalid, 2 when the file cannot be read.
``validate-all-protocols <dir>``
    Validate every protocol file in a directory; exit 1 if any is invalid.
``protocol-forge {validate,validate-all,docs}``
    Umbrella command with the same subcommands plus Markdown tool docs.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any, TextIO

from protocol_forge.config import ForgeConfig, ValidationConfig
from protocol_forge.errors import LoadError
from protocol_forge.generation import ToolGenerator, render_tool_docs, validate_generated_tools
from protocol_forge.protocol.loader import DEFAULT_SUFFIXES, DynamicLoader, FileSource
from protocol_forge.protocol.models import ProtocolDefinition
from protocol_forge.protocol.validator import ProtocolValidator, ValidationResult
from protocol_forge.telemetry import ForgeLogger, LogLevel

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_UNREADABLE = 2


def read_protocol(path: Path) -> Any:
    """Read and parse one protocol file.

    Raises:
        LoadError: If the file is missing, unreadable or malformed
    """
    source = FileSource(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Cannot read {path}: {e}", source=str(path), cause=e) from e
    return DynamicLoader.parse(text, source)


def validate_document(raw: Any, config: ValidationConfig) -> ValidationResult:
    """Run the validator and, when it passes, the generated-tool checks."""
    result = ProtocolValidator(config).validate(raw)
    if result.valid:
        protocol = ProtocolDefinition.model_validate(raw)
        result.merge(validate_generated_tools(ToolGenerator().generate_tools(protocol)))
    return result


def _validation_config(args: argparse.Namespace) -> ValidationConfig:
    if args.config:
        config = ForgeConfig.from_file(args.config).validation
    else:
        config = ValidationConfig.from_env()
    changes: dict[str, Any] = {}
    if args.strict:
        changes["strict_mode"] = True
    if args.max_endpoints is not None:
        changes["max_endpoints"] = args.max_endpoints
    if args.allowed_domain:
        changes["allowed_domains"] = list(args.allowed_domain)
    return replace(config, **changes)


def _print_result(path: Path, result: ValidationResult, out: TextIO) -> None:
    status = "valid" if result.valid else "INVALID"
    counts = f"{len(result.errors)} errors, {len(result.warnings)} warnings"
    print(f"{path}: {status} ({counts})", file=out)
    for issue in result.errors:
        print(f"  error   {issue.code}: {issue}", file=out)
    for issue in result.warnings:
        print(f"  warning {issue.code}: {issue}", file=out)


def _check(path: Path, config: ValidationConfig) -> tuple[int, ValidationResult | None, str | None]:
    """Exit code, validation result, and the read error when unreadable."""
    try:
        raw = read_protocol(path)
    except LoadError as e:
        return EXIT_UNREADABLE, None, e.message
    result = validate_document(raw, config)
    return (EXIT_VALID if result.valid else EXIT_INVALID), result, None


def _as_json(path: Path, result: ValidationResult | None, error: str | None) -> dict[str, Any]:
    if result is None:
        return {"path": str(path), "valid": False, "error": error}
    return {"path": str(path), **result.to_dict()}


def _print_outcome(path: Path, result: ValidationResult | None, error: str | None) -> None:
    if result is None:
        print(f"{path}: {error}", file=sys.stderr)
    else:
        _print_result(path, result, sys.stdout)


def cmd_validate(args: argparse.Namespace) -> int:
    path = Path(args.path)
    code, result, error = _check(path, _validation_config(args))
    if args.json:
        print(json.dumps(_as_json(path, result, error), indent=2))
    else:
        _print_outcome(path, result, error)
    return code


def cmd_validate_all(args: argparse.Namespace) -> int:
    config = _validation_config(args)
    directory = Path(args.directory)
    if not directory.is_dir():
        print(f"{directory}: not a directory", file=sys.stderr)
        return EXIT_UNREADABLE

    files = sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in DEFAULT_SUFFIXES
    )
    reports = []
    for path in files:
        _, result, error = _check(path, config)
        reports.append(_as_json(path, result, error))
        if not args.json:
            _print_outcome(path, result, error)

    invalid = sum(1 for r in reports if not r["valid"])
    if args.json:
        summary = {"total": len(reports), "invalid": invalid, "results": reports}
        print(json.dumps(summary, indent=2))
    else:
        print(f"\n{len(reports) - invalid}/{len(reports)} protocols valid")
    return EXIT_INVALID if invalid else EXIT_VALID


def cmd_docs(args: argparse.Namespace) -> int:
    path = Path(args.path)
    try:
        raw = read_protocol(path)
    except LoadError as e:
        print(f"{path}: {e.message}", file=sys.stderr)
        return EXIT_UNREADABLE
    result = ProtocolValidator(_validation_config(args)).validate(raw)
    if not result.valid:
        _print_result(path, result, sys.stderr)
        return EXIT_INVALID

    protocol = ProtocolDefinition.model_validate(raw)
    tools = ToolGenerator().generate_tools(protocol)
    title = f"{protocol.name} {protocol.version}"
    markdown = render_tool_docs(tools, title=title)
    if args.output:
        Path(args.output).write_text(markdown, encoding="utf-8")
    else:
        sys.stdout.write(markdown)
    return EXIT_VALID


def _add_validation_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strict", action="store_true", help="treat domain allow-list misses as errors"
    )
    parser.add_argument(
        "--max-endpoints", type=int, default=None, help="maximum endpoints per protocol"
    )
    parser.add_argument(
        "--allowed-domain",
        action="append",
        default=[],
        metavar="DOMAIN",
        help="allowed endpoint host (repeatable)",
    )
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=[level.value for level in LogLevel],
        help="log level for diagnostics on stderr",
    )


def _configure_logging(args: argparse.Namespace) -> None:
    ForgeLogger.configure(level=LogLevel(args.log_level), format="text")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protocol-forge", description="Validate protocols and document generated tools"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="validate one protocol file")
    validate.add_argument("path")
    validate.add_argument("--json", action="store_true", help="machine-readable output")
    _add_validation_options(validate)
    validate.set_defaults(func=cmd_validate)

    validate_all = subparsers.add_parser("validate-all", help="validate a directory of protocols")
    validate_all.add_argument("directory")
    validate_all.add_argument("--json", action="store_true", help="machine-readable output")
    _add_validation_options(validate_all)
    validate_all.set_defaults(func=cmd_validate_all)

    docs = subparsers.add_parser("docs", help="render Markdown docs for a protocol's tools")
    docs.add_argument("path")
    docs.add_argument("-o", "--output", default=None, help="write to a file instead of stdout")
    _add_validation_options(docs)
    docs.set_defaults(func=cmd_docs)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args)
    return int(args.func(args))


def validate_protocol_main(argv: Sequence[str] | None = None) -> int:
    """``validate-protocol`` console script."""
    return main(["validate", *(sys.argv[1:] if argv is None else argv)])


def validate_all_protocols_main(argv: Sequence[str] | None = None) -> int:
    """``validate-all-protocols`` console script."""
    return main(["validate-all", *(sys.argv[1:] if argv is None else argv)])


if __name__ == "__main__":
    sys.exit(main())

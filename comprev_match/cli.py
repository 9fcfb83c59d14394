from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from comprev_match import __version__ as TOOL_VERSION
from comprev_match.contracts import build_compare_summary
from comprev_match.engine import MSG_PROCESSING_ERROR, ComparisonResult, process_files
from comprev_match.exporter import result_exports
from comprev_match.loader import ALL_FORMATS
from comprev_match.log import set_level


EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_RECONCILE_FAILED = 3

OUTPUT_STAMP_ENV = "COMPREV_MATCH_OUTPUT_STAMP"
SUMMARY_NAME = "summary.json"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class ComprevArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get(OUTPUT_STAMP_ENV)
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "comprev-match-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (ImportError, UnicodeDecodeError, ValueError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def exit_code_for_result(result: ComparisonResult) -> int:
    if result.success:
        return EXIT_SUCCESS
    if result.message == MSG_PROCESSING_ERROR:
        return EXIT_PARSE_FAILED
    return EXIT_RECONCILE_FAILED


def check_input(path: Path | None, label: str) -> None:
    if path is None:
        return
    if not path.exists():
        raise CliError(f"{label} file not found: {path}", EXIT_COMMAND_ERROR)
    suffix = path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{suffix or '[missing extension]'}' for {label}. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )


def ensure_writable(paths: list[Path]) -> None:
    for path in paths:
        if path.exists():
            raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)


def write_bytes(path: Path, payload: bytes) -> None:
    ensure_writable([path])
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)


def render_result_text(result: ComparisonResult) -> str:
    stats = result.stats
    lines = [
        "comprev-match compare",
        f"Status: {'ok' if result.success else 'failed'}",
        f"Message: {result.message}",
        f"Base rows: {stats.base_total}",
        f"Base rows after RGPS filter: {stats.base_filtered}",
    ]
    if stats.pensionistas_total is not None:
        lines.append(f"Pensioners: {stats.pensionistas_total} rows, {stats.pensionistas_matches} found in base")
    if stats.aposentados_total is not None:
        lines.append(f"Retirees: {stats.aposentados_total} rows, {stats.aposentados_missing} missing from base")
    for warning in result.warnings:
        lines.append(f"Warning: {warning}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = ComprevArgumentParser(
        prog="comprev-match",
        description="Cross-check the COMPREV general base against pensioner and retiree sheets by CPF.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compare = subparsers.add_parser("compare", help="Compare the general base with pensioners and/or retirees.")
    compare.add_argument("base", help="General base spreadsheet (Base Geral)")
    compare.add_argument("--pensionistas", help="Pensioners spreadsheet; base rows found in it are exported")
    compare.add_argument("--aposentados", help="Retirees spreadsheet; its rows missing from the base are exported")
    compare.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    compare.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    compare.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    compare.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_compare(args: argparse.Namespace) -> int:
    base_path = Path(args.base)
    pensionistas_path = Path(args.pensionistas) if args.pensionistas else None
    aposentados_path = Path(args.aposentados) if args.aposentados else None

    if args.verbose:
        set_level(logging.DEBUG)
    elif args.quiet:
        set_level(logging.ERROR)

    try:
        check_input(base_path, "Base")
        check_input(pensionistas_path, "Pensioners")
        check_input(aposentados_path, "Retirees")

        out_dir = determine_output_dir(args, base_path)
        result = process_files(base_path, pensionistas_path, aposentados_path)

        exports = [(out_dir / filename, payload) for filename, payload in result_exports(result)]
        summary_path = out_dir / SUMMARY_NAME
        # Nothing is written unless every target is free.
        ensure_writable([path for path, _ in exports] + [summary_path])

        written: list[Path] = []
        for path, payload in exports:
            write_bytes(path, payload)
            written.append(path)

        summary = build_compare_summary(
            result,
            inputs={
                "base": base_path,
                "pensionistas": pensionistas_path,
                "aposentados": aposentados_path,
            },
            output_files=written,
        )
        write_bytes(summary_path, json_dumps(summary).encode("utf-8"))

        if args.json:
            print(json_dumps(summary))
        else:
            emit_human(render_result_text(result), quiet=args.quiet)
            for path in written:
                emit_human(f"Export written: {path}", quiet=args.quiet)
            emit_human(f"Summary written: {summary_path}", quiet=args.quiet)
        return exit_code_for_result(result)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "compare":
            return run_compare(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())

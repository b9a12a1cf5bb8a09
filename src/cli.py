"""Command-line interface for parsing cruise contract text.

Provides subcommands for parsing a single contract, parsing a folder of
contracts into a CSV summary, and re-validating edited contract data.
"""

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any

from src.parsing.contract_parser import parse_contract_text
from src.parsing.models import ParseResult
from src.utils.config import AppConfig, load_config
from src.utils.logger import get_logger, setup_logging
from src.validation.rules_engine import RulesEngine

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.txt",)
_CSV_COLUMNS = [
    "filename",
    "status",
    "base_currency",
    "currency_confidence",
    "cabins_parsed",
    "cabins_unparsed",
    "dates_found",
    "parse_rate",
    "partial",
    "needs_review",
    "reason",
    "contract_fingerprint",
    "parse_time_ms",
    "error",
]


def _find_contracts(input_dir: Path) -> list[Path]:
    """Find all contract text files in a directory.

    Args:
        input_dir: Directory to scan.

    Returns:
        Sorted list of text file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def _outcome(result: ParseResult) -> str:
    if result.needs_review:
        return "needs_review"
    return "partial" if result.partial else "success"


def _summary_row(filename: str, result: ParseResult) -> dict[str, object]:
    t = result.telemetry
    return {
        "filename": filename,
        "status": _outcome(result),
        "base_currency": result.data.base_currency if result.data else None,
        "currency_confidence": t.currency_confidence,
        "cabins_parsed": t.cabins_parsed,
        "cabins_unparsed": t.cabins_unparsed,
        "dates_found": t.dates_found,
        "parse_rate": t.parse_rate,
        "partial": result.partial,
        "needs_review": result.needs_review,
        "reason": result.reason,
        "contract_fingerprint": t.contract_fingerprint,
        "parse_time_ms": t.parse_time_ms,
        "error": None,
    }


def parse_file(
    file_path: Path, currency: str | None = None, config: AppConfig | None = None
) -> ParseResult:
    """Parse a single contract text file.

    Args:
        file_path: Path to a UTF-8 text file.
        currency: Optional currency hint.
        config: Application config; loaded from disk when omitted.

    Returns:
        The parse result.
    """
    config = config or load_config()
    hints = {"currency": currency} if currency else None
    return parse_contract_text(
        {"pdf_text": _read_text(file_path), "hints": hints},
        config=config.parser,
        rules_engine=RulesEngine(Path(config.validation.rules_path)),
    )


def process_folder(
    input_dir: Path,
    output_csv: Path,
    currency: str | None = None,
    verbose: bool = False,
) -> dict[str, int]:
    """Parse every contract in a folder and export a CSV summary.

    A file that cannot be read or parsed is logged and recorded as
    failed; the remaining files are still processed.

    Args:
        input_dir: Directory containing ``.txt`` contracts.
        output_csv: Path for the output CSV file.
        currency: Optional currency hint applied to every file.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, needs_review and failed counts.
    """
    config = load_config()
    files = _find_contracts(input_dir)
    if not files:
        logger.warning("No contracts found in %s", input_dir)
        return {"total": 0, "successful": 0, "needs_review": 0, "failed": 0}

    logger.info("Found %d contracts to parse", len(files))

    rows: list[dict[str, object]] = []
    successful = needs_review = failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Parsing [{i}/{len(files)}]: {file_path.name}")
        try:
            result = parse_file(file_path, currency, config)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to parse %s: %s", file_path.name, exc)
            rows.append({"filename": file_path.name, "status": "failed", "error": str(exc)})
            failed += 1
            continue

        rows.append(_summary_row(file_path.name, result))
        if result.success:
            successful += 1
        else:
            needs_review += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {
        "total": len(files),
        "successful": successful,
        "needs_review": needs_review,
        "failed": failed,
    }
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    if not rows:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Parsing Complete")
    print(f"{'=' * 50}")
    print(f"Total:        {summary['total']}")
    print(f"Successful:   {summary['successful']}")
    print(f"Needs review: {summary['needs_review']}")
    print(f"Failed:       {summary['failed']}")
    print(f"Output:       {output_csv}")


def validate_file(file_path: Path, config: AppConfig | None = None) -> dict[str, Any]:
    """Validate edited contract data stored as JSON.

    Accepts either the bare data object or a full parse result with a
    ``data`` key.
    """
    config = config or load_config()
    payload = json.loads(file_path.read_text(encoding="utf-8"))
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    report = RulesEngine(Path(config.validation.rules_path)).validate(payload)
    return {"valid": report.valid, "errors": report.errors, "warnings": report.warnings}


def _emit(document: dict[str, Any], output: Path | None) -> None:
    output_str = json.dumps(document, indent=2, default=str)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(output_str)
        print(f"Output written to {output}")
    else:
        print(output_str)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Cruise Contract Parser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parse_parser = subparsers.add_parser("parse", help="Parse a single contract")
    parse_parser.add_argument("file", type=Path, help="Contract text file")
    parse_parser.add_argument("--currency", help="Currency hint, e.g. USD")
    parse_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser("batch", help="Parse a folder of contracts")
    batch_parser.add_argument("input_dir", type=Path, help="Directory of .txt contracts")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument("--currency", help="Currency hint for every file")
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Validate edited contract data (JSON)"
    )
    validate_parser.add_argument("file", type=Path, help="JSON file with contract data")

    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config.log_level)

    if args.command == "parse":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = parse_file(args.file, args.currency, config)
        _emit(result.to_dict(), args.output)
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.currency, args.verbose)
    elif args.command == "validate":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            report = validate_file(args.file, config)
        except (json.JSONDecodeError, TypeError) as exc:
            print(f"Error: {args.file} is not valid contract data: {exc}", file=sys.stderr)
            sys.exit(1)
        _emit(report, None)
        if not report["valid"]:
            sys.exit(2)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()

"""
AudioBrief CLI - Argument parsing and dispatch.

Responsibilities:
- Argument parsing
- Loading ProcessingConfig (JSON file + flag overrides) and AnalysisSettings (env)
- Logging setup
- Writing the JSON report, printing the output filename
- Exit codes
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from audiobrief import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="audiobrief",
        description="AudioBrief command-line interface.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze one recording and name its output file.",
        description=(
            "Analyze one recording and name its output file.\n\n"
            "Detects silence from the samples, requests a semantic analysis\n"
            "(summary, silence classification, anomalies, transcription),\n"
            "merges both and writes a JSON report.\n\n"
            "The API key is read from AUDIOBRIEF_API_KEY or GEMINI_API_KEY."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    analyze_parser.add_argument(
        "--input",
        metavar="PATH",
        required=True,
        help="Path to input audio file.",
    )
    analyze_parser.add_argument(
        "--config",
        metavar="PATH",
        help="JSON file with processing settings (format, naming_pattern, ...).",
    )
    analyze_parser.add_argument(
        "--pattern",
        metavar="PATTERN",
        help="Naming pattern, e.g. '%%text%%_%%day%%-%%month%%'.",
    )
    analyze_parser.add_argument(
        "--format",
        metavar="FORMAT",
        help="Output format: mp3, wav or flac.",
    )
    analyze_parser.add_argument(
        "--alert-email",
        metavar="ADDRESS",
        help="Address to notify on technical or unclassified silence.",
    )
    analyze_parser.add_argument(
        "--output",
        metavar="PATH",
        help="Write the JSON report here instead of stdout.",
    )
    analyze_parser.add_argument(
        "--timeout",
        metavar="SECONDS",
        type=float,
        help="Upper bound on the semantic service call.",
    )
    analyze_parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the semantic service; the report carries fallback semantic fields.",
    )
    analyze_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def load_config(args: argparse.Namespace):
    """Merge the optional JSON config file with command-line overrides."""
    from audiobrief.config import ProcessingConfig

    data = {}
    if args.config:
        with open(args.config, "r", encoding="utf-8") as f:
            data = json.load(f)

    config = ProcessingConfig.from_dict(data)
    overrides = {}
    if args.pattern is not None:
        overrides["naming_pattern"] = args.pattern
    if args.format is not None:
        overrides["format"] = args.format
    if args.alert_email is not None:
        overrides["alert_email"] = args.alert_email
    if overrides:
        config = ProcessingConfig.from_dict({**config.to_dict(), **overrides})
    return config


def emit_report(report: dict, output: str | None) -> None:
    from audiobrief.utils import serialize_json

    text = serialize_json(report)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def cmd_analyze(args: argparse.Namespace) -> int:
    """
    Handle the 'analyze' subcommand.

    Returns exit code: 0 on a completed request (possibly with degraded
    semantic fields), 1 on bad configuration or an undecodable input.
    """
    from audiobrief.audio import DecodeError
    from audiobrief.config import AnalysisSettings
    from audiobrief.pipeline import AnalysisPipeline, build_error, build_report

    configure_logging(args.verbose)

    try:
        config = load_config(args)
        settings = AnalysisSettings.from_env()
        if args.timeout is not None:
            settings = dataclasses.replace(settings, service_timeout=args.timeout)
    except (OSError, ValueError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    pipeline = AnalysisPipeline.from_settings(settings, offline=args.offline)

    def show_stage(name: str, label: str) -> None:
        logging.getLogger("audiobrief.cli").info(label)

    try:
        result = pipeline.process(Path(args.input), config, on_stage=show_stage)
    except DecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        report = build_report(None, [build_error("DECODE_ERROR", str(e), e.detail)])
        if args.output:
            emit_report(report, args.output)
        return 1

    emit_report(result.to_dict(), args.output)
    if args.output:
        print(f"Output file: {result.processed.final_name}")
        print(f"Report written: {args.output}")
    else:
        # stdout carries the report
        print(f"Output file: {result.processed.final_name}", file=sys.stderr)
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "analyze":
        exit_code = cmd_analyze(args)
        sys.exit(exit_code)

"""CLI interface for report-scrubber — one report on stdin, result on stdout.

Usage:
    # Redact a report, always removing the patient's own names
    cat report.txt | report-scrubber --scrub "John,Smith" redact

    # Same, with JSON metadata about what was removed
    cat report.txt | report-scrubber scrub

    # Strip boilerplate, then decide whether the report is worth keeping
    cat report.txt | report-scrubber strip
    cat report.txt | report-scrubber gatekeep     # exit status 1 if discarded

    # Full pipeline: strip, gatekeep, redact
    cat report.txt | report-scrubber --config cdw.yaml clean

    # Validate NHS numbers, one per line
    printf '943 476 5919\\n1234567890\\n' | report-scrubber nhs
"""

from __future__ import annotations
import argparse
import json
import logging
import sys

from .config import create_context, load_from_env, load_from_yaml
from .context import RedactionContext
from .cleaning import validate_nhs_number
from .errors import ReportScrubberError


def _build_context(args: argparse.Namespace) -> tuple[RedactionContext, list[str]]:
    cfg = load_from_yaml(args.config) if args.config else load_from_env()
    if args.no_bundled_boilerplate:
        cfg["include_bundled_boilerplate"] = False
    context = create_context(cfg)
    scrub_terms = list(cfg["scrub_terms"])
    if args.scrub:
        scrub_terms.extend(t for t in args.scrub.split(",") if t.strip())
    return context, scrub_terms


def cmd_redact(args: argparse.Namespace) -> int:
    """Redact PII from a plain-text report on stdin."""
    context, scrub_terms = _build_context(args)
    sys.stdout.write(context.redact(sys.stdin.read(), scrub_terms))
    sys.stdout.write("\n")
    return 0


def cmd_scrub(args: argparse.Namespace) -> int:
    """Redact and report what was removed, as JSON."""
    context, scrub_terms = _build_context(args)
    result = context.scrub(sys.stdin.read(), scrub_terms)

    # Output redacted text and match metadata, never the matched values
    output = {
        "text": result.text,
        "redacted_word_count": len(result.redacted_words),
        "pii": [
            {"category": m.category.value, "start": m.start, "end": m.end}
            for m in result.pii
        ],
    }
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def cmd_strip(args: argparse.Namespace) -> int:
    """Remove boilerplate from the report on stdin."""
    context, _ = _build_context(args)
    sys.stdout.write(context.strip_boilerplate(sys.stdin.read()))
    sys.stdout.write("\n")
    return 0


def cmd_gatekeep(args: argparse.Namespace) -> int:
    """Echo the trimmed report, or nothing (exit 1) if it is discarded."""
    context, _ = _build_context(args)
    kept = context.gatekeep(sys.stdin.read())
    if kept is None:
        return 1
    sys.stdout.write(kept)
    sys.stdout.write("\n")
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    """Strip, gatekeep and redact in one go."""
    context, scrub_terms = _build_context(args)
    cleaned = context.clean(sys.stdin.read(), scrub_terms)
    if cleaned is None:
        return 1
    sys.stdout.write(cleaned)
    sys.stdout.write("\n")
    return 0


def cmd_nhs(args: argparse.Namespace) -> int:
    """Validate NHS numbers, one per line; invalid lines print empty."""
    values = args.numbers or sys.stdin.read().splitlines()
    failures = 0
    for raw in values:
        cleaned = validate_nhs_number(raw)
        if cleaned is None:
            failures += 1
        sys.stdout.write((cleaned or "") + "\n")
    return 1 if failures else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="report-scrubber",
        description="De-identify free-text clinical reports",
    )
    parser.add_argument("--config", default=None, help="YAML config path")
    parser.add_argument("--scrub", default="", help="Comma-separated terms to always redact")
    parser.add_argument("--no-bundled-boilerplate", action="store_true",
                        help="Do not load the bundled boilerplate markers")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("redact", help="Redact a report (stdin)")
    sub.add_parser("scrub", help="Redact a report, JSON output (stdin)")
    sub.add_parser("strip", help="Strip boilerplate (stdin)")
    sub.add_parser("gatekeep", help="Keep or discard a report (stdin)")
    sub.add_parser("clean", help="Strip, gatekeep and redact (stdin)")
    nhs = sub.add_parser("nhs", help="Validate NHS numbers (args or stdin lines)")
    nhs.add_argument("numbers", nargs="*")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "redact": cmd_redact,
        "scrub": cmd_scrub,
        "strip": cmd_strip,
        "gatekeep": cmd_gatekeep,
        "clean": cmd_clean,
        "nhs": cmd_nhs,
    }
    try:
        return cmds[args.command](args)
    except ReportScrubberError as e:
        sys.stderr.write(f"report-scrubber: {e}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())

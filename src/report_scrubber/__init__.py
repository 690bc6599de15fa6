"""report-scrubber — deterministic de-identification for clinical reports."""

from __future__ import annotations
from typing import Iterable

from .cleaning import clean_field, validate_nhs_number
from .context import RedactionContext, get_default_context, set_default_context
from .errors import ConfigError, ReportScrubberError, RuleCompileError
from .lexicon import BundledSeedProvider, FileSeedProvider, Lexicon
from .patterns import MARKER, PatternLibrary
from .rule_sources import FileRuleSource, NullRuleSource, SqliteRuleSource, StaticRuleSource
from .scrubber import ScrubList, Scrubber, ScrubResult
from .tokenizer import tokenize
from .types import PIICategory, PIIMatch, Span, SpanKind


def redact(
    document: str | None,
    scrub_terms: str | Iterable[str] | None = (),
    *,
    context: RedactionContext | None = None,
) -> str:
    """Redact structured PII and non-dictionary words from a report."""
    return (context or get_default_context()).redact(document, scrub_terms)


def strip_boilerplate(document: str | None, *, context: RedactionContext | None = None) -> str:
    """Remove templated boilerplate spans from a report."""
    return (context or get_default_context()).strip_boilerplate(document)


def gatekeep(document: str | None, *, context: RedactionContext | None = None) -> str | None:
    """The trimmed report, or None if it should be discarded."""
    return (context or get_default_context()).gatekeep(document)


__all__ = [
    "redact", "strip_boilerplate", "gatekeep", "validate_nhs_number", "clean_field",
    "RedactionContext", "get_default_context", "set_default_context",
    "Lexicon", "BundledSeedProvider", "FileSeedProvider",
    "PatternLibrary", "MARKER",
    "Scrubber", "ScrubList", "ScrubResult", "tokenize",
    "NullRuleSource", "StaticRuleSource", "FileRuleSource", "SqliteRuleSource",
    "PIICategory", "PIIMatch", "Span", "SpanKind",
    "ReportScrubberError", "RuleCompileError", "ConfigError",
]
__version__ = "0.1.0"

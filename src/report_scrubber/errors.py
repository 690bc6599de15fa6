"""Exception types."""

from __future__ import annotations


class ReportScrubberError(Exception):
    """Base class for all report-scrubber errors."""


class RuleCompileError(ReportScrubberError):
    """A boilerplate or wipeout pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid rule pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class ConfigError(ReportScrubberError):
    """Configuration could not be loaded or is malformed."""

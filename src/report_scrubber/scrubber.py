"""Scrubber — the redaction pass.  Patterns first, then words.

Usage:
    from report_scrubber import Lexicon, PatternLibrary, Scrubber, ScrubList

    scrubber = Scrubber(lexicon, PatternLibrary.default())   # reusable, thread-safe
    scrubber.redact("Seen by Dr Bloggs on 11.3.96.", ScrubList.from_terms("Bloggs"))
    # "Seen by Dr [REDACTED] on [REDACTED]."
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable

from .lexicon import Lexicon
from .patterns import MARKER, PatternLibrary
from .tokenizer import tokenize
from .types import PIIMatch


class ScrubList:
    """Per-call terms that are always redacted, dictionary words or not."""

    __slots__ = ("_terms",)

    def __init__(self, terms: Iterable[str] = ()) -> None:
        blacklist: set[str] = set()
        for term in terms:
            lower = term.lower()
            blacklist.add(lower)
            blacklist.add(lower + "s")
        self._terms = frozenset(blacklist)

    @classmethod
    def from_terms(cls, terms: str | Iterable[str] | None) -> "ScrubList":
        """Build from an iterable of terms or a comma-separated string.

        Non-string items (numbers from a JSON body) are taken as their text.
        """
        if terms is None:
            return cls()
        if isinstance(terms, str):
            terms = terms.split(",")
        cleaned = (str(t).strip() for t in terms if t is not None)
        return cls(t for t in cleaned if t)

    def __contains__(self, word: object) -> bool:
        return word in self._terms

    def __len__(self) -> int:
        return len(self._terms)

    def __bool__(self) -> bool:
        return bool(self._terms)


EMPTY_SCRUB_LIST = ScrubList()


@dataclass(slots=True)
class ScrubResult:
    """Result of scrubbing a report."""
    text: str                                               # redacted, trimmed
    redacted_words: list[str] = field(default_factory=list)  # word tokens replaced
    pii: list[PIIMatch] = field(default_factory=list)        # structured hits in the input


class Scrubber:
    """Structured-PII substitution followed by lexicon-based word redaction."""

    def __init__(self, lexicon: Lexicon, patterns: PatternLibrary) -> None:
        self.lexicon = lexicon
        self.patterns = patterns

    def is_known(self, word: str, scrub_list: ScrubList = EMPTY_SCRUB_LIST) -> bool:
        """True when ``word`` may be kept as-is."""
        lower = word.lower()
        if lower in scrub_list:
            return False
        if self.lexicon.contains(lower):
            return True
        if "-" not in lower:
            return False

        parts = [p for p in lower.split("-") if p]
        if any(p in scrub_list for p in parts):
            return False
        return any(self.lexicon.contains(p) for p in parts)

    def scrub(self, text: str | None, scrub_list: ScrubList = EMPTY_SCRUB_LIST) -> ScrubResult:
        if not text:
            return ScrubResult(text="")

        substituted = self.patterns.substitute(text)

        out: list[str] = []
        redacted: list[str] = []
        for span in tokenize(substituted):
            if span.is_word and not self.is_known(span.text, scrub_list):
                out.append(MARKER)
                redacted.append(span.text)
            else:
                out.append(span.text)

        return ScrubResult(
            text="".join(out).strip(),
            redacted_words=redacted,
            pii=self.patterns.scan(text),
        )

    def redact(self, text: str | None, scrub_list: ScrubList = EMPTY_SCRUB_LIST) -> str:
        """Redact structured PII and unknown words; returns trimmed text."""
        if not text:
            return ""
        substituted = self.patterns.substitute(text)
        return "".join(
            MARKER if span.is_word and not self.is_known(span.text, scrub_list) else span.text
            for span in tokenize(substituted)
        ).strip()

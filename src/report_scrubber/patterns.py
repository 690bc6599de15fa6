"""Structured PII patterns: dates, phone numbers, NHS-shaped numbers,
email addresses and UK postcodes.

These run over the whole report BEFORE tokenization.  Every match is
replaced by a single marker so the word pass never sees the digits or
address fragments that made it up.
"""

from __future__ import annotations
import re

from .types import PIICategory, PIIMatch, PIIPattern

MARKER = "[REDACTED]"
SUBSTITUTION = " " + MARKER

# ── Date / time building blocks ──────────────────────────────────────

_WEEKDAY = r"(Sun|Mon|Tue|Wed|Thu|Fri|Sat)"
_MONTH_DAY = r"((0?[1-9]|[1-2][0-9]|3[01])(st|nd|rd|th)?)"
_MONTH_NAMES = (
    "((Jan(uary)?)|(Feb(ruary)?)|(Mar(ch)?)|(Apr(il)?)|May|(Jun(e)?)|(Jul(y)?)"
    "|(Aug(ust)?)|(Sep(tember)?)|(Oct(ober)?)|(Nov(ember)?)|(Dec(ember)?))"
)
# Title Case or UPPER CASE only; lower-case "may"/"mar" are ordinary words
_WORDED_MONTH = f"({_MONTH_NAMES}|{_MONTH_NAMES.upper()})"
_NUMBERED_MONTH = r"((0?[1-9]|1[0-2]))"
_YEAR = r"(19[0-9]{2}|[2-9][0-9]{3}|[0-9]{2})"
_TIME = r"(\s+(2[0-3]|[0-1]?[0-9]):([0-5][0-9])(:(60|[0-5][0-9]))?)"
_TIMEZONE = r"(([-+][0-9]{2}[0-5][0-9]|(?:UT|GMT|(?:E|C|M|P)(?:ST|DT)|[A-IK-Z])))"
_SEP = r"[.\\/-]"
_SEP_OR_SPACE = r"[ .\\/-]"

_DATE_FORMATS = [
    # 11.3.96, 21/07/1978, Mon 1st-02-2003 10:15
    rf"\s*{_WEEKDAY}?{_MONTH_DAY}{_SEP}\s*{_NUMBERED_MONTH}{_SEP}\s*{_YEAR}{_TIME}?{_TIMEZONE}?",
    # 29-Mar-2020, 11th May 1999
    rf"\s*{_WEEKDAY}?{_MONTH_DAY}{_SEP_OR_SPACE}{_WORDED_MONTH}{_SEP_OR_SPACE}{_YEAR}{_TIME}?{_TIMEZONE}?",
    # 03/2020
    rf"\s*{_WEEKDAY}?{_NUMBERED_MONTH}{_SEP}{_YEAR}{_SEP_OR_SPACE}{_TIME}?{_TIMEZONE}?",
    # Mar 29 2020
    rf"\s*{_WEEKDAY}?{_WORDED_MONTH}{_SEP_OR_SPACE}{_MONTH_DAY}{_SEP_OR_SPACE}{_TIME}?{_TIMEZONE}?\s+{_YEAR}",
    # December 1994
    rf"\s*{_WORDED_MONTH}\s*{_YEAR}({_SEP_OR_SPACE}{_TIME}{_TIMEZONE}?)?",
]

# ── Postcode building blocks ─────────────────────────────────────────

STREET_ABBREVIATIONS = (
    "Ave", "Blvd", "Bdwy", "Cir", "Cl", "Ct", "Cr", "Dr", "Gdn", "Gdns", "Gn",
    "Gr", "Ln", "Mt", "Pl", "Pk", "Rdg", "Rd", "Sq", "St", "Ter", "Val",
)

_POSTCODE_CORE = (
    r"(([gG][iI][rR] *0[aA]{2})"
    r"|((([a-pr-uwyzA-PR-UWYZ][a-hk-yA-HK-Y]?[0-9][0-9]?)"
    r"|(([a-pr-uwyzA-PR-UWYZ][0-9][a-hjkstuwA-HJKSTUW])"
    r"|([a-pr-uwyzA-PR-UWYZ][a-hk-yA-HK-Y][0-9O][abehmnprv-yABEHMNPRV-Y])))"
    r"\s*[0-9O][abd-hjlnp-uw-zABD-HJLNP-UW-Z]{2}))"
)


def _street_lookbehind() -> str:
    """Lookbehinds allowing one stray character straight after a street
    abbreviation ("Ave." / "Rd,").  Grouped by width because ``re`` only
    accepts fixed-width lookbehinds."""
    by_width: dict[int, list[str]] = {}
    for abbr in STREET_ABBREVIATIONS:
        by_width.setdefault(len(abbr), []).append(abbr)
    parts = [
        rf"(?<=\s(?i:{'|'.join(names)}))"
        for _, names in sorted(by_width.items())
    ]
    return "(?:" + "|".join(parts) + ")"


# Longest address run kept in front of a postcode.  Each start position
# scans at most this many characters, so a long run with no postcode costs
# linear time instead of quadratic.
ADDRESS_RUN_LIMIT = 120


def _postcode_pattern() -> str:
    # Address run: plain address characters, or any other character that
    # directly follows a street abbreviation.  The two branches never match
    # the same character.
    address_char = rf"(?:[,\sa-zA-Z0-9]|{_street_lookbehind()}[^,\sa-zA-Z0-9\n])"
    return rf"({address_char}{{0,{ADDRESS_RUN_LIMIT}}},\s)?{_POSTCODE_CORE}"


# Ordered: earlier patterns are substituted first.
_PATTERNS: list[tuple[PIICategory, str, int]] = [
    (PIICategory.DATE, "|".join(_DATE_FORMATS), 0),

    (PIICategory.PHONE,
     r"(([0]|((\+|00)[0-9]{1,3}))[0-9][0-9][0-9]\s*[0-9]\s*[0-9][0-9]\s*[0-9]\s*[0-9][0-9][0-9])", 0),

    # 123 456 7890 / 1234567890
    (PIICategory.NHS_LIKE,
     r"([0-9][0-9][0-9][ -]?[0-9][0-9][0-9][ -]?[0-9][0-9][0-9][0-9])", 0),
    # 123 4567 890
    (PIICategory.NHS_LIKE,
     r"([0-9][0-9][0-9][ -][0-9][0-9][0-9][0-9][ -][0-9][0-9][0-9])", 0),

    (PIICategory.EMAIL, (
        r"((?:[a-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
        r'|"(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21\x23-\x5b\x5d-\x7f]|\\[\x01-\x09\x0b\x0c\x0e-\x7f])*")'
        r"@(?:(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"
        r"|\[(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
        r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?|[a-z0-9-]*[a-z0-9]:"
        r"(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21-\x5a\x53-\x7f]|\\[\x01-\x09\x0b\x0c\x0e-\x7f])+)\]))"
    ), re.IGNORECASE),

    (PIICategory.POSTCODE, _postcode_pattern(), 0),
]


class PatternLibrary:
    """Fixed, ordered set of compiled structured-PII matchers."""

    __slots__ = ("_patterns",)

    def __init__(self, patterns: list[PIIPattern]) -> None:
        self._patterns = tuple(patterns)

    @classmethod
    def default(cls) -> "PatternLibrary":
        return cls([
            PIIPattern(category=category, regex=re.compile(source, flags))
            for category, source, flags in _PATTERNS
        ])

    @property
    def patterns(self) -> tuple[PIIPattern, ...]:
        return self._patterns

    def substitute(self, text: str) -> str:
        """Replace every structured-PII match with the redaction marker.

        Patterns run in order over the then-current text, so a later
        pattern sees the markers left by an earlier one.
        """
        for pattern in self._patterns:
            text = pattern.regex.sub(SUBSTITUTION, text)
        return text

    def scan(self, text: str) -> list[PIIMatch]:
        """Run all patterns against the original text. Returns non-overlapping
        matches, earlier patterns winning ties."""
        matches: list[tuple[int, PIIMatch]] = []
        for rank, pattern in enumerate(self._patterns):
            for m in pattern.regex.finditer(text):
                if m.end() == m.start():
                    continue
                matches.append((rank, PIIMatch(
                    category=pattern.category,
                    start=m.start(),
                    end=m.end(),
                    text=m.group(),
                )))
        return _deduplicate(matches)


def _deduplicate(matches: list[tuple[int, PIIMatch]]) -> list[PIIMatch]:
    """Remove overlapping matches, keeping higher-priority then longer ones."""
    if not matches:
        return []
    ranked = sorted(matches, key=lambda rm: (rm[0], -(rm[1].end - rm[1].start)))
    taken: list[PIIMatch] = []
    used_ranges: list[tuple[int, int]] = []
    for _, m in ranked:
        if not any(m.start < e and m.end > s for s, e in used_ranges):
            taken.append(m)
            used_ranges.append((m.start, m.end))
    return sorted(taken, key=lambda m: m.start)

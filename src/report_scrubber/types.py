"""Core types."""

from __future__ import annotations
import enum
import re
from dataclasses import dataclass
from typing import Any


class SpanKind(enum.Enum):
    WORD = "word"
    SEPARATOR = "separator"


class PIICategory(str, enum.Enum):
    DATE = "date"
    PHONE = "phone"
    NHS_LIKE = "nhs_like"
    EMAIL = "email"
    POSTCODE = "postcode"


@dataclass(frozen=True, slots=True)
class Span:
    """A run of text from the tokenizer, with its range in the source."""
    kind: SpanKind
    text: str
    start: int
    end: int

    @property
    def is_word(self) -> bool:
        return self.kind is SpanKind.WORD


@dataclass(frozen=True, slots=True)
class PIIPattern:
    """A compiled structured-PII matcher."""
    category: PIICategory
    regex: re.Pattern


@dataclass(frozen=True, slots=True)
class PIIMatch:
    """A single structured-PII hit."""
    category: PIICategory
    start: int
    end: int
    text: str


@dataclass(frozen=True, slots=True)
class Rule:
    """A compiled boilerplate or wipeout rule."""
    source: str            # pattern as supplied
    compiled: Any          # regex.Pattern
    origin: str            # "static" | "dynamic"

"""Single-pass tokenizer producing typed spans.

A word is a run of letters that may be continued, but never started, by a
connector character ('-' or '.').  Connectors trailing a word are split
off into their own separator span so "Dr." classifies as "Dr" and the dot
survives untouched.  Everything that is not part of a word is kept as a
separator, verbatim, and the redaction marker is always one separator.

Joining the ``text`` of every span gives back the input exactly.
"""

from __future__ import annotations

from .patterns import MARKER
from .types import Span, SpanKind

CONNECTORS = frozenset("-.")


def tokenize(text: str) -> list[Span]:
    spans: list[Span] = []
    n = len(text)
    sep_start = 0           # start of the pending separator run
    word_start = -1         # start of the word in progress, -1 if none
    trailing = 0            # connectors seen since the last letter
    i = 0

    def flush_separator(end: int) -> None:
        if end > sep_start:
            spans.append(Span(SpanKind.SEPARATOR, text[sep_start:end], sep_start, end))

    def close_word(end: int) -> None:
        word_end = end - trailing
        spans.append(Span(SpanKind.WORD, text[word_start:word_end], word_start, word_end))
        if trailing:
            spans.append(Span(SpanKind.SEPARATOR, text[word_end:end], word_end, end))

    while i < n:
        c = text[i]
        if c.isalpha():
            if word_start < 0:
                flush_separator(i)
                word_start = i
            trailing = 0
            i += 1
            continue
        if c in CONNECTORS and word_start >= 0:
            trailing += 1
            i += 1
            continue

        if word_start >= 0:
            close_word(i)
            word_start = -1
            trailing = 0
            sep_start = i

        if text.startswith(MARKER, i):
            # Marker text is never classified; it may sit inside a longer
            # separator run, so only the skip matters here.
            i += len(MARKER)
            continue
        i += 1

    if word_start >= 0:
        close_word(n)
    else:
        flush_separator(n)
    return spans


def words(text: str) -> list[str]:
    """The word tokens of ``text``, trailing connectors removed."""
    return [s.text for s in tokenize(text) if s.is_word]

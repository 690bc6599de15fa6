"""Lexicon — the vocabulary of words that are safe to keep.

Built once from four seed lists (general English, medical terms, medical
acronyms, local additions).  The bundled general list is the `english-words`
distribution (web2 + GCIDE, common nouns only) topped up with a curated list
of clinical-report vocabulary, case-folded and sorted so membership is a
binary search.  Anything the tokenizer finds that is not in here gets
redacted.

Usage:
    lexicon = Lexicon.from_provider(BundledSeedProvider())
    "Carotid" in lexicon     # True
    "Bloggs" in lexicon      # False
"""

from __future__ import annotations
import functools
import importlib.resources
import logging
from bisect import bisect_left
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)

# Bundled seed files under report_scrubber/data/
SEED_FILES = {
    "general": "words_general.txt",
    "medical": "medical_terms.txt",
    "acronyms": "medical_acronyms.txt",
    "custom": "custom_dictionary.txt",
}


@dataclass(frozen=True, slots=True)
class SeedLists:
    """The four raw word lists merged into a Lexicon."""
    general: tuple[str, ...] = ()
    medical: tuple[str, ...] = ()
    acronyms: tuple[str, ...] = ()
    custom: tuple[str, ...] = ()


class SeedProvider(Protocol):
    def load(self) -> SeedLists: ...


def _split_lines(text: str) -> tuple[str, ...]:
    return tuple(line for line in text.splitlines() if line.strip())


@functools.lru_cache(maxsize=1)
def english_words() -> tuple[str, ...]:
    """Lower-case dictionary words from the web2 and GCIDE lists.

    Capitalised entries are proper nouns (first names, places) and are
    left out: those are exactly what the word pass has to redact.
    """
    from english_words import get_english_words_set

    words = get_english_words_set(["web2", "gcide"], alpha=True)
    return tuple(sorted(w for w in words if w.islower()))


class BundledSeedProvider:
    """Reads the word lists shipped inside the package.

    The general list is the installed English dictionary plus the
    bundled clinical vocabulary.
    """

    def load(self) -> SeedLists:
        root = importlib.resources.files("report_scrubber") / "data"
        lists = {
            name: _split_lines((root / filename).read_text(encoding="utf-8"))
            for name, filename in SEED_FILES.items()
        }
        lists["general"] = english_words() + lists["general"]
        return SeedLists(**lists)


class FileSeedProvider:
    """Reads word lists from paths on disk, one word per line.

    Any list left as None falls back to the bundled copy, so a deployment
    can swap in a full English dictionary and keep the medical lists.
    """

    def __init__(
        self,
        *,
        general: str | Path | None = None,
        medical: str | Path | None = None,
        acronyms: str | Path | None = None,
        custom: str | Path | None = None,
    ) -> None:
        self._paths = {
            "general": general,
            "medical": medical,
            "acronyms": acronyms,
            "custom": custom,
        }

    def load(self) -> SeedLists:
        bundled = BundledSeedProvider().load()
        lists: dict[str, tuple[str, ...]] = {}
        for name, path in self._paths.items():
            if path is None:
                lists[name] = getattr(bundled, name)
                continue
            path = Path(path).expanduser()
            lists[name] = _split_lines(path.read_text(encoding="utf-8"))
            logger.debug("loaded %d %s seed words from %s", len(lists[name]), name, path)
        return SeedLists(**lists)


class Lexicon:
    """Immutable, sorted, case-folded vocabulary."""

    __slots__ = ("_words",)

    def __init__(self, words: Iterable[str]) -> None:
        folded = {w.strip().lower() for w in words}
        folded.discard("")
        self._words: tuple[str, ...] = tuple(sorted(folded))

    @classmethod
    def from_seeds(
        cls,
        general: Iterable[str] = (),
        medical: Iterable[str] = (),
        acronyms: Iterable[str] = (),
        custom: Iterable[str] = (),
    ) -> "Lexicon":
        merged: list[str] = []
        for seed in (general, medical, custom, acronyms):
            merged.extend(seed)
        return cls(merged)

    @classmethod
    def from_provider(cls, provider: SeedProvider) -> "Lexicon":
        seeds = provider.load()
        lexicon = cls.from_seeds(seeds.general, seeds.medical, seeds.acronyms, seeds.custom)
        logger.info("lexicon built with %d entries", len(lexicon))
        return lexicon

    def contains(self, word: str) -> bool:
        item = word.lower()
        i = bisect_left(self._words, item)
        return i < len(self._words) and self._words[i] == item

    def __contains__(self, word: object) -> bool:
        return isinstance(word, str) and self.contains(word)

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self):
        return iter(self._words)

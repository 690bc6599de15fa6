"""RedactionContext — everything a scrub call reads, built once and shared.

The lexicon and the PII patterns never change after construction.  The
boilerplate and wipeout rules come in two halves: static rules (bundled
markers plus configured patterns, compiled strictly at startup) and
dynamic rules (fetched from a RuleSource).  Each half is published as an
immutable snapshot; a reload builds a fresh snapshot and swaps the
reference, so a reader sees either the old rule set or the new one in
full.

Dynamic rules are fetched lazily, at most once, on first use.  The fetch
runs outside the lock: other callers do not wait for it and keep using
the resident rules until the new snapshot is published.  A failed fetch
is reported once as a diagnostic string, the resident rules stay in
place, and the source is not asked again until an explicit reload.
"""

from __future__ import annotations
import importlib.resources
import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from .lexicon import BundledSeedProvider, Lexicon, SeedProvider
from .patterns import PatternLibrary
from .rule_sources import NullRuleSource, RuleSource
from .rules import (
    BoilerplateStripper,
    DocumentGatekeeper,
    compile_boilerplate,
    compile_many,
    compile_wipeout,
)
from .scrubber import ScrubList, Scrubber, ScrubResult
from .types import Rule

logger = logging.getLogger(__name__)

BUNDLED_BOILERPLATE = "boilerplate_markers.txt"


def bundled_boilerplate() -> list[str]:
    """Formatting markers every report source leaves behind."""
    ref = importlib.resources.files("report_scrubber") / "data" / BUNDLED_BOILERPLATE
    text = ref.read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


@dataclass(frozen=True, slots=True)
class RuleSnapshot:
    static: tuple[Rule, ...] = ()
    dynamic: tuple[Rule, ...] = ()
    loaded: bool = False            # dynamic half fetched from the source

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self.static + self.dynamic


class RedactionContext:
    """Shareable, read-mostly state for redaction, stripping and gatekeeping."""

    def __init__(
        self,
        lexicon: Lexicon,
        patterns: PatternLibrary | None = None,
        *,
        boilerplate: Iterable[str] = (),
        wipeout: Iterable[str] = (),
        rule_source: RuleSource | None = None,
        include_bundled_boilerplate: bool = True,
    ) -> None:
        self.lexicon = lexicon
        self.patterns = patterns or PatternLibrary.default()
        self.scrubber = Scrubber(self.lexicon, self.patterns)
        self.rule_source: RuleSource = rule_source or NullRuleSource()

        static_boilerplate = list(bundled_boilerplate()) if include_bundled_boilerplate else []
        static_boilerplate.extend(boilerplate)
        # Bad static patterns are a configuration error: fail now.
        bp_rules, _ = compile_many(static_boilerplate, compile_boilerplate, origin="static", strict=True)
        wo_rules, _ = compile_many(wipeout, compile_wipeout, origin="static", strict=True)

        self._lock = threading.Lock()
        self._attempted: set[str] = set()       # lazy fetches already started
        self._boilerplate = RuleSnapshot(static=bp_rules)
        self._wipeout = RuleSnapshot(static=wo_rules)

    @classmethod
    def create(
        cls,
        seed_provider: SeedProvider | None = None,
        **kwargs,
    ) -> "RedactionContext":
        """Build a context from a seed provider (bundled lists by default)."""
        lexicon = Lexicon.from_provider(seed_provider or BundledSeedProvider())
        return cls(lexicon, **kwargs)

    # ------------------------------------------------------------------
    # Rule snapshots
    # ------------------------------------------------------------------

    @property
    def boilerplate_rules(self) -> tuple[Rule, ...]:
        return self._boilerplate.rules

    @property
    def wipeout_rules(self) -> tuple[Rule, ...]:
        return self._wipeout.rules

    def add_boilerplate(self, pattern: str) -> Rule:
        """Append one dynamic boilerplate rule.  Raises RuleCompileError."""
        rule = compile_boilerplate(pattern, origin="dynamic")
        with self._lock:
            snap = self._boilerplate
            self._boilerplate = replace(snap, dynamic=snap.dynamic + (rule,))
        return rule

    def add_wipeout(self, pattern: str) -> Rule:
        """Append one dynamic wipeout rule.  Raises RuleCompileError."""
        rule = compile_wipeout(pattern, origin="dynamic")
        with self._lock:
            snap = self._wipeout
            self._wipeout = replace(snap, dynamic=snap.dynamic + (rule,))
        return rule

    def _fetch(
        self,
        kind: str,
        fetch: Callable[[], Iterable[str]],
        compiler: Callable[[str, str], Rule],
    ) -> tuple[tuple[Rule, ...] | None, str | None]:
        """Fetch and compile a dynamic rule set.

        Returns (rules, diagnostic).  rules is None when the fetch itself
        failed; bad individual patterns are skipped and only reported.
        """
        try:
            patterns = list(fetch())
        except Exception as e:
            logger.warning("failed to fetch %s rules: %s", kind, e)
            return None, str(e)
        rules, errors = compile_many(patterns, compiler, origin="dynamic", strict=False)
        logger.info("loaded %d dynamic %s rules", len(rules), kind)
        return rules, "; ".join(errors) or None

    def _claim(self, kind: str) -> bool:
        """Take the one lazy fetch of ``kind``.  False if already taken."""
        with self._lock:
            if kind in self._attempted:
                return False
            self._attempted.add(kind)
            return True

    def _load(
        self,
        kind: str,
        fetch: Callable[[], Iterable[str]],
        compiler: Callable[[str, str], Rule],
        *,
        reload: bool,
    ) -> str | None:
        # The fetch runs without the lock; only the swap is serialised.
        rules, diagnostic = self._fetch(kind, fetch, compiler)
        if rules is None:
            return diagnostic
        attr = "_" + kind
        with self._lock:
            snap = getattr(self, attr)
            if reload:
                setattr(self, attr, RuleSnapshot(static=snap.static, dynamic=rules, loaded=True))
            elif not snap.loaded:
                setattr(self, attr, RuleSnapshot(static=snap.static, dynamic=snap.dynamic + rules, loaded=True))
        return diagnostic

    def ensure_boilerplate_loaded(self) -> str | None:
        """Fetch dynamic boilerplate rules if no fetch has been tried yet.

        Returns None on success, if already loaded, or if another caller
        holds the fetch; otherwise a diagnostic message.  A failed fetch
        is not retried until reload_boilerplate().
        """
        if self._boilerplate.loaded or not self._claim("boilerplate"):
            return None
        return self._load("boilerplate", self.rule_source.fetch_boilerplate, compile_boilerplate, reload=False)

    def ensure_wipeout_loaded(self) -> str | None:
        """Fetch dynamic wipeout rules once; see ensure_boilerplate_loaded."""
        if self._wipeout.loaded or not self._claim("wipeout"):
            return None
        return self._load("wipeout", self.rule_source.fetch_wipeout, compile_wipeout, reload=False)

    def ensure_dynamic_rules(self) -> str | None:
        diagnostics = [d for d in (self.ensure_boilerplate_loaded(), self.ensure_wipeout_loaded()) if d]
        return "; ".join(diagnostics) or None

    def reload_boilerplate(self) -> str | None:
        """Replace the dynamic boilerplate rules with a fresh fetch.

        If the fetch fails the current rules are kept.
        """
        with self._lock:
            self._attempted.add("boilerplate")
        return self._load("boilerplate", self.rule_source.fetch_boilerplate, compile_boilerplate, reload=True)

    def reload_wipeout(self) -> str | None:
        """Replace the dynamic wipeout rules with a fresh fetch."""
        with self._lock:
            self._attempted.add("wipeout")
        return self._load("wipeout", self.rule_source.fetch_wipeout, compile_wipeout, reload=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def redact(self, document: str | None, scrub_terms: str | Iterable[str] | None = ()) -> str:
        return self.scrubber.redact(document, ScrubList.from_terms(scrub_terms))

    def scrub(self, document: str | None, scrub_terms: str | Iterable[str] | None = ()) -> ScrubResult:
        return self.scrubber.scrub(document, ScrubList.from_terms(scrub_terms))

    def strip_boilerplate(self, document: str | None) -> str:
        diagnostic = self.ensure_boilerplate_loaded()
        if diagnostic:
            logger.warning("stripping with resident boilerplate rules only: %s", diagnostic)
        return BoilerplateStripper(self.boilerplate_rules).strip(document)

    def gatekeep(self, document: str | None) -> str | None:
        diagnostic = self.ensure_wipeout_loaded()
        if diagnostic:
            logger.warning("gatekeeping with resident wipeout rules only: %s", diagnostic)
        return DocumentGatekeeper(self.wipeout_rules).gatekeep(document)

    def clean(self, document: str | None, scrub_terms: str | Iterable[str] | None = ()) -> str | None:
        """Strip boilerplate, gatekeep, then redact what is kept."""
        kept = self.gatekeep(self.strip_boilerplate(document))
        if kept is None:
            return None
        return self.redact(kept, scrub_terms)


# Lazy process-wide default; the lexicon is not built until first use
_default: RedactionContext | None = None
_default_lock = threading.Lock()


def get_default_context() -> RedactionContext:
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = RedactionContext.create()
    return _default


def set_default_context(context: RedactionContext | None) -> None:
    """Install (or with None, reset) the process-wide default context."""
    global _default
    with _default_lock:
        _default = context

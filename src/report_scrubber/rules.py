"""Boilerplate and wipeout rules.

Boilerplate rules erase templated spans (letterheads, signature blocks,
migration banners).  Wipeout rules decide whether a whole report is
worth keeping at all.

Rules are compiled with the ``regex`` package rather than ``re``: the
rule tables are written with Unicode property classes such as ``\\p{P}``.
"""

from __future__ import annotations
import logging
from typing import Iterable

import regex

from .errors import RuleCompileError
from .types import Rule

logger = logging.getLogger(__name__)

BOILERPLATE_FLAGS = 0
WIPEOUT_FLAGS = regex.IGNORECASE


def compile_boilerplate(pattern: str, origin: str = "static") -> Rule:
    try:
        compiled = regex.compile(pattern, BOILERPLATE_FLAGS)
    except regex.error as e:
        raise RuleCompileError(pattern, str(e)) from e
    return Rule(source=pattern, compiled=compiled, origin=origin)


def compile_wipeout(pattern: str, origin: str = "static") -> Rule:
    try:
        compiled = regex.compile(pattern, WIPEOUT_FLAGS)
    except regex.error as e:
        raise RuleCompileError(pattern, str(e)) from e
    return Rule(source=pattern, compiled=compiled, origin=origin)


def compile_many(
    patterns: Iterable[str],
    compiler,
    *,
    origin: str,
    strict: bool,
) -> tuple[tuple[Rule, ...], list[str]]:
    """Compile a batch of patterns in order.

    With ``strict`` the first bad pattern raises.  Otherwise bad patterns
    are skipped and returned as error strings alongside the good rules.
    Blank entries are ignored either way.
    """
    rules: list[Rule] = []
    errors: list[str] = []
    for pattern in patterns:
        if pattern is None or not str(pattern).strip():
            continue
        try:
            rules.append(compiler(str(pattern), origin))
        except RuleCompileError as e:
            if strict:
                raise
            logger.warning("skipping %s rule: %s", origin, e)
            errors.append(str(e))
    return tuple(rules), errors


class BoilerplateStripper:
    """Applies boilerplate rules once each, in order."""

    __slots__ = ("rules",)

    def __init__(self, rules: Iterable[Rule]) -> None:
        self.rules = tuple(rules)

    def strip(self, document: str | None) -> str:
        if not document:
            return ""
        cleaned = document.strip()
        for rule in self.rules:
            cleaned = rule.compiled.sub("", cleaned)
        return cleaned.strip()


class DocumentGatekeeper:
    """Discards reports that match any wipeout rule in full.

    Rules are applied with ``fullmatch`` so an alternation such as
    ``n/a|none`` only discards a report that is exactly one of its
    branches, never one that merely starts or ends with it.
    """

    __slots__ = ("rules",)

    def __init__(self, rules: Iterable[Rule]) -> None:
        self.rules = tuple(rules)

    def matching_rule(self, document: str) -> Rule | None:
        for rule in self.rules:
            if rule.compiled.fullmatch(document):
                return rule
        return None

    def gatekeep(self, document: str | None) -> str | None:
        """The trimmed report, or None when it should be discarded."""
        if document is None:
            return None
        trimmed = document.strip()
        if not trimmed:
            return None
        rule = self.matching_rule(trimmed)
        if rule is not None:
            logger.debug("report discarded by wipeout rule %r", rule.source)
            return None
        return trimmed

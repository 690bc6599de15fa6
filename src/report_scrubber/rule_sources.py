"""Dynamic rule sources — where extra boilerplate/wipeout patterns come from.

A source only hands back pattern strings; compiling and publishing them
is the context's job.  Any exception a source raises is treated as a
failed fetch and never reaches document processing.

Usage:
    source = SqliteRuleSource("~/.report-scrubber/rules.db")
    source.add_wipeout(r"\\.+")
    context = RedactionContext.create(rule_source=source)
"""

from __future__ import annotations
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)


class RuleSource(Protocol):
    def fetch_boilerplate(self) -> Iterable[str]: ...
    def fetch_wipeout(self) -> Iterable[str]: ...


class NullRuleSource:
    """No dynamic rules."""

    def fetch_boilerplate(self) -> list[str]:
        return []

    def fetch_wipeout(self) -> list[str]:
        return []


class StaticRuleSource:
    """Rules held in memory, e.g. from an inline config block."""

    def __init__(self, boilerplate: Iterable[str] = (), wipeout: Iterable[str] = ()) -> None:
        self.boilerplate = list(boilerplate)
        self.wipeout = list(wipeout)

    def fetch_boilerplate(self) -> list[str]:
        return list(self.boilerplate)

    def fetch_wipeout(self) -> list[str]:
        return list(self.wipeout)


def read_pattern_file(path: str | Path) -> list[str]:
    """One pattern per line; surrounding whitespace and blank lines dropped."""
    text = Path(path).expanduser().read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


class FileRuleSource:
    """Rules read from plain-text files, re-read on every fetch."""

    def __init__(
        self,
        *,
        boilerplate_path: str | Path | None = None,
        wipeout_path: str | Path | None = None,
    ) -> None:
        self.boilerplate_path = boilerplate_path
        self.wipeout_path = wipeout_path

    def fetch_boilerplate(self) -> list[str]:
        if self.boilerplate_path is None:
            return []
        return read_pattern_file(self.boilerplate_path)

    def fetch_wipeout(self) -> list[str]:
        if self.wipeout_path is None:
            return []
        return read_pattern_file(self.wipeout_path)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS boilerplate_regex (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern TEXT NOT NULL,
    created_at REAL NOT NULL DEFAULT (julianday('now'))
);
CREATE TABLE IF NOT EXISTS report_removal_regex (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern TEXT NOT NULL,
    created_at REAL NOT NULL DEFAULT (julianday('now'))
);
"""


class SqliteRuleSource:
    """Rule tables kept in SQLite, returned in insertion order."""

    __slots__ = ("_db_path", "_db")

    def __init__(self, db_path: str | Path = "rules.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)

    def _patterns(self, table: str) -> list[str]:
        rows = self._db.execute(f"SELECT pattern FROM {table} ORDER BY id").fetchall()
        return [r[0] for r in rows]

    def _insert(self, table: str, pattern: str) -> None:
        self._db.execute(f"INSERT INTO {table} (pattern) VALUES (?)", (pattern,))
        self._db.commit()

    def fetch_boilerplate(self) -> list[str]:
        patterns = self._patterns("boilerplate_regex")
        logger.debug("fetched %d boilerplate rules from %s", len(patterns), self._db_path)
        return patterns

    def fetch_wipeout(self) -> list[str]:
        patterns = self._patterns("report_removal_regex")
        logger.debug("fetched %d wipeout rules from %s", len(patterns), self._db_path)
        return patterns

    def add_boilerplate(self, pattern: str) -> None:
        self._insert("boilerplate_regex", pattern)

    def add_wipeout(self, pattern: str) -> None:
        self._insert("report_removal_regex", pattern)

    def clear(self) -> None:
        self._db.execute("DELETE FROM boilerplate_regex")
        self._db.execute("DELETE FROM report_removal_regex")
        self._db.commit()

    def close(self) -> None:
        self._db.close()

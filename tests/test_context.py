"""Tests for RedactionContext, rule sources, config, CLI and HTTP dispatch."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json
import threading

import pytest

from report_scrubber import (
    ConfigError,
    FileRuleSource,
    Lexicon,
    RedactionContext,
    RuleCompileError,
    SqliteRuleSource,
    StaticRuleSource,
    get_default_context,
    set_default_context,
)
from report_scrubber import cli, server
from report_scrubber.config import create_context, load_config, load_from_yaml


LEXICON = Lexicon.from_seeds(
    general=["normal", "chest", "seen", "by", "the", "report", "footer"],
    acronyms=["CT"],
)


class CountingSource:
    """Rule source that records how often it is asked."""

    def __init__(self, boilerplate=(), wipeout=()):
        self.boilerplate = list(boilerplate)
        self.wipeout = list(wipeout)
        self.calls = {"boilerplate": 0, "wipeout": 0}

    def fetch_boilerplate(self):
        self.calls["boilerplate"] += 1
        return list(self.boilerplate)

    def fetch_wipeout(self):
        self.calls["wipeout"] += 1
        return list(self.wipeout)


class BrokenSource:
    def fetch_boilerplate(self):
        raise RuntimeError("rule store unavailable")

    def fetch_wipeout(self):
        raise RuntimeError("rule store unavailable")


def _context(**kwargs):
    kwargs.setdefault("include_bundled_boilerplate", False)
    return RedactionContext(LEXICON, **kwargs)


# ── Lazy loading ─────────────────────────────────────────────────────

def test_dynamic_rules_fetched_once():
    source = CountingSource(boilerplate=["FOOTER"], wipeout=[r"\.+"])
    context = _context(rule_source=source)
    assert source.calls == {"boilerplate": 0, "wipeout": 0}

    assert context.strip_boilerplate("Normal chest. FOOTER") == "Normal chest."
    assert context.strip_boilerplate("Normal chest. FOOTER") == "Normal chest."
    assert context.gatekeep("...") is None
    assert context.gatekeep("...") is None
    assert source.calls == {"boilerplate": 1, "wipeout": 1}


def test_ensure_dynamic_rules_loads_both():
    source = CountingSource(boilerplate=["a"], wipeout=["b"])
    context = _context(rule_source=source)
    assert context.ensure_dynamic_rules() is None
    assert [r.source for r in context.boilerplate_rules] == ["a"]
    assert [r.source for r in context.wipeout_rules] == ["b"]
    assert context.ensure_dynamic_rules() is None
    assert source.calls == {"boilerplate": 1, "wipeout": 1}


def test_static_rules_come_before_dynamic_rules():
    source = StaticRuleSource(boilerplate=["dyn"])
    context = _context(boilerplate=["static"], rule_source=source)
    context.ensure_boilerplate_loaded()
    assert [(r.source, r.origin) for r in context.boilerplate_rules] == [
        ("static", "static"), ("dyn", "dynamic"),
    ]


def test_failed_fetch_reported_once_until_reload():
    source = CountingSource(wipeout=["nothing"])
    context = _context(wipeout=[r"\.+"], rule_source=BrokenSource())
    assert context.ensure_wipeout_loaded() == "rule store unavailable"
    # static rules still apply
    assert context.gatekeep("....") is None
    assert context.gatekeep("Normal chest.") == "Normal chest."

    # the source is not asked again on every call
    context.rule_source = source
    assert context.ensure_wipeout_loaded() is None
    assert context.gatekeep("Nothing") == "Nothing"
    assert source.calls["wipeout"] == 0

    assert context.reload_wipeout() is None
    assert source.calls["wipeout"] == 1
    assert context.gatekeep("Nothing") is None


class BlockingSource:
    """Rule source whose fetch waits until released."""

    def __init__(self, wipeout):
        self.wipeout = list(wipeout)
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def fetch_boilerplate(self):
        return []

    def fetch_wipeout(self):
        self.calls += 1
        self.entered.set()
        self.release.wait(5)
        return list(self.wipeout)


def test_callers_do_not_wait_for_a_slow_fetch():
    source = BlockingSource(wipeout=["nothing"])
    context = _context(wipeout=[r"\.+"], rule_source=source)
    worker = threading.Thread(target=context.gatekeep, args=("Normal chest.",))
    worker.start()
    try:
        assert source.entered.wait(5)
        # the fetch is in flight: resident rules answer straight away
        assert context.gatekeep("...") is None
        assert context.gatekeep("Nothing") == "Nothing"
    finally:
        source.release.set()
        worker.join(5)
    assert source.calls == 1
    assert context.gatekeep("Nothing") is None


def test_bad_dynamic_pattern_skipped():
    source = StaticRuleSource(wipeout=["(", r"\.+"])
    context = _context(rule_source=source)
    diagnostic = context.ensure_wipeout_loaded()
    assert "invalid rule pattern '('" in diagnostic
    assert [r.source for r in context.wipeout_rules] == [r"\.+"]
    assert context.gatekeep("...") is None


def test_bad_static_pattern_raises():
    with pytest.raises(RuleCompileError):
        _context(wipeout=["("])
    with pytest.raises(RuleCompileError):
        _context(boilerplate=["[unclosed"])


# ── Reload ───────────────────────────────────────────────────────────

def test_reload_replaces_dynamic_rules():
    source = CountingSource(boilerplate=["FOOTER"])
    context = _context(rule_source=source)
    assert context.strip_boilerplate("Normal FOOTER HEADER") == "Normal  HEADER"

    source.boilerplate = ["HEADER"]
    # not picked up until reloaded
    assert context.strip_boilerplate("Normal FOOTER HEADER") == "Normal  HEADER"
    assert context.reload_boilerplate() is None
    assert context.strip_boilerplate("Normal FOOTER HEADER") == "Normal FOOTER"


def test_reload_keeps_rules_when_fetch_fails():
    context = _context(rule_source=StaticRuleSource(wipeout=[r"\.+"]))
    context.ensure_wipeout_loaded()
    context.rule_source = BrokenSource()
    assert context.reload_wipeout() == "rule store unavailable"
    assert [r.source for r in context.wipeout_rules] == [r"\.+"]
    assert context.gatekeep("..") is None


def test_reload_keeps_static_rules():
    source = CountingSource(wipeout=["x"])
    context = _context(wipeout=["y"], rule_source=source)
    source.wipeout = ["z"]
    assert context.reload_wipeout() is None
    assert [r.source for r in context.wipeout_rules] == ["y", "z"]


class TogglingSource:
    """Rule source that alternates between two complete rule sets."""

    SETS = (["alpha", "beta"], ["gamma", "delta"])

    def __init__(self):
        self._lock = threading.Lock()
        self._turn = 0

    def _next(self):
        with self._lock:
            self._turn += 1
            return list(self.SETS[self._turn % 2])

    def fetch_boilerplate(self):
        return self._next()

    def fetch_wipeout(self):
        return self._next()


def test_readers_never_see_a_half_reloaded_rule_set():
    context = _context(rule_source=TogglingSource())
    context.ensure_dynamic_rules()
    allowed_sets = [list(s) for s in TogglingSource.SETS]
    errors = []
    done = threading.Event()

    def reloader():
        try:
            for _ in range(200):
                context.reload_boilerplate()
                context.reload_wipeout()
        finally:
            done.set()

    def reader():
        while not done.is_set():
            stripped = context.strip_boilerplate("alpha beta gamma delta")
            if stripped not in ("gamma delta", "alpha beta"):
                errors.append(stripped)
            sources = [r.source for r in context.wipeout_rules]
            if sources not in allowed_sets:
                errors.append(sources)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads.append(threading.Thread(target=reloader))
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    assert errors == []


def test_add_rules_at_runtime():
    context = _context()
    context.add_boilerplate("FOOTER")
    context.add_wipeout("nothing to report")
    assert context.strip_boilerplate("Normal chest. FOOTER") == "Normal chest."
    assert context.gatekeep("Nothing to report") is None
    with pytest.raises(RuleCompileError):
        context.add_wipeout("(")


# ── clean() pipeline ─────────────────────────────────────────────────

def test_clean_strips_gatekeeps_and_redacts():
    context = _context(boilerplate=["FOOTER"], wipeout=[r"\.+"])
    assert context.clean("Seen by Bloggs. FOOTER") == "Seen by [REDACTED]."
    assert context.clean(". FOOTER") is None
    assert context.clean(None) is None


# ── Default context ──────────────────────────────────────────────────

def test_default_context_is_shared_and_replaceable():
    try:
        custom = _context()
        set_default_context(custom)
        assert get_default_context() is custom
        set_default_context(None)
        first = get_default_context()
        assert first is not custom
        assert get_default_context() is first
    finally:
        set_default_context(None)


# ── Rule sources ─────────────────────────────────────────────────────

def test_file_rule_source(tmp_path):
    boilerplate = tmp_path / "boilerplate.txt"
    boilerplate.write_text("FOOTER\n\n  HEADER  \n", encoding="utf-8")
    source = FileRuleSource(boilerplate_path=boilerplate)
    assert source.fetch_boilerplate() == ["FOOTER", "HEADER"]
    assert source.fetch_wipeout() == []


def test_missing_rule_file_is_a_failed_fetch(tmp_path):
    source = FileRuleSource(wipeout_path=tmp_path / "missing.txt")
    context = _context(rule_source=source)
    assert context.ensure_wipeout_loaded()
    assert context.gatekeep("Normal chest.") == "Normal chest."


def test_sqlite_rule_source(tmp_path):
    source = SqliteRuleSource(tmp_path / "rules" / "rules.db")
    try:
        source.add_wipeout(r"\.+")
        source.add_wipeout("no images")
        source.add_boilerplate("FOOTER")
        assert source.fetch_wipeout() == [r"\.+", "no images"]
        assert source.fetch_boilerplate() == ["FOOTER"]

        context = _context(rule_source=source)
        assert context.gatekeep("No images") is None
        assert context.strip_boilerplate("Normal FOOTER") == "Normal"

        source.clear()
        assert source.fetch_wipeout() == []
        assert context.reload_wipeout() is None
        assert context.gatekeep("No images") == "No images"
    finally:
        source.close()


def test_sqlite_rules_persist(tmp_path):
    path = tmp_path / "rules.db"
    first = SqliteRuleSource(path)
    first.add_boilerplate("FOOTER")
    first.close()

    second = SqliteRuleSource(path)
    try:
        assert second.fetch_boilerplate() == ["FOOTER"]
    finally:
        second.close()


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config({})
    assert cfg["rule_source"]["type"] == "none"
    assert cfg["include_bundled_boilerplate"] is True
    assert cfg["boilerplate"] == []
    assert cfg["scrub_terms"] == []
    assert all(path is None for path in cfg["lexicon"].values())


def test_load_config_nested_and_idempotent():
    cfg = load_config({"report_scrubber": {"wipeout": [r"\.+"], "scrub_terms": "Oxford, Horton"}})
    assert cfg["wipeout"] == [r"\.+"]
    assert cfg["scrub_terms"] == ["Oxford", "Horton"]
    assert load_config(cfg) == cfg


def test_load_config_rejects_unknown_source():
    with pytest.raises(ConfigError):
        load_config({"rule_source": {"type": "postgres"}})


def test_create_context_from_config(tmp_path):
    general = tmp_path / "general.txt"
    general.write_text("normal\nchest\n", encoding="utf-8")
    context = create_context({
        "lexicon": {"general": str(general)},
        "include_bundled_boilerplate": False,
        "boilerplate": ["FOOTER"],
        "rule_source": {"type": "static", "wipeout": [r"\.+"]},
    })
    assert context.strip_boilerplate("Normal chest FOOTER") == "Normal chest"
    assert context.gatekeep("..") is None
    assert context.redact("Normal chest Bloggs") == "Normal chest [REDACTED]"


def test_create_context_missing_word_list(tmp_path):
    with pytest.raises(ConfigError):
        create_context({"lexicon": {"general": str(tmp_path / "missing.txt")}})


def test_load_from_yaml(tmp_path):
    path = tmp_path / "scrubber.yaml"
    path.write_text(
        "report_scrubber:\n"
        "  wipeout:\n"
        "    - '\\.+'\n"
        "  rule_source:\n"
        "    type: sqlite\n"
        f"    path: {tmp_path / 'rules.db'}\n"
        "  scrub_terms:\n"
        "    - Oxford\n",
        encoding="utf-8",
    )
    cfg = load_from_yaml(path)
    assert cfg["wipeout"] == [r"\.+"]
    assert cfg["rule_source"]["type"] == "sqlite"
    assert cfg["scrub_terms"] == ["Oxford"]


def test_load_from_yaml_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_from_yaml(tmp_path / "missing.yaml")


# ── CLI ──────────────────────────────────────────────────────────────

@pytest.fixture
def no_env_config(monkeypatch):
    monkeypatch.delenv("REPORT_SCRUBBER_CONFIG", raising=False)


def _run(monkeypatch, capsys, argv, stdin=""):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    code = cli.main(argv)
    return code, capsys.readouterr().out


def test_cli_redact(no_env_config, monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["--scrub", "Heart", "redact"], "Seen by Mr Heart on 11.3.96.\n")
    assert code == 0
    assert out == "Seen by Mr [REDACTED] on [REDACTED].\n"


def test_cli_scrub_json(no_env_config, monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["scrub"], "Seen by Bloggs on 11.3.96.")
    assert code == 0
    payload = json.loads(out)
    assert payload["text"] == "Seen by [REDACTED] on [REDACTED]."
    assert payload["redacted_word_count"] == 1
    assert [p["category"] for p in payload["pii"]] == ["date"]
    assert "Bloggs" not in out


def test_cli_strip(no_env_config, monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["strip"], "~BXR Chest :~b normal\n")
    assert code == 0
    assert out == "XR Chest : normal\n"


def test_cli_gatekeep_and_clean_with_config(monkeypatch, capsys, tmp_path):
    path = tmp_path / "scrubber.yaml"
    path.write_text("wipeout:\n  - '\\.+'\n", encoding="utf-8")

    code, out = _run(monkeypatch, capsys, ["--config", str(path), "gatekeep"], "...\n")
    assert (code, out) == (1, "")
    code, out = _run(monkeypatch, capsys, ["--config", str(path), "gatekeep"], " Normal chest. \n")
    assert (code, out) == (0, "Normal chest.\n")
    code, out = _run(monkeypatch, capsys, ["--config", str(path), "clean"], "~UChest:~u seen by Bloggs.")
    assert (code, out) == (0, "Chest: seen by [REDACTED].\n")


def test_cli_nhs(no_env_config, monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["nhs", "943 476 5919", "1234567890"])
    assert code == 1
    assert out == "9434765919\n\n"

    code, out = _run(monkeypatch, capsys, ["nhs"], "1103396005\n1126883867\n")
    assert code == 0
    assert out == "1103396005\n1126883867\n"


def test_cli_bad_config_exits_2(monkeypatch, capsys, tmp_path):
    code, out = _run(monkeypatch, capsys, ["--config", str(tmp_path / "missing.yaml"), "redact"], "x")
    assert code == 2


# ── HTTP dispatch ────────────────────────────────────────────────────

def test_server_redact():
    context = _context()
    status, payload = server.handle("/redact", {"text": "Seen by Bloggs", "scrub_terms": "Seen"}, context)
    assert status == 200
    assert payload == {"text": "[REDACTED] by [REDACTED]"}


def test_server_redact_with_numeric_scrub_term():
    context = _context()
    status, payload = server.handle("/redact", {"text": "Seen by Bloggs", "scrub_terms": ["Bloggs", 42]}, context)
    assert status == 200
    assert payload == {"text": "Seen by [REDACTED]"}


def test_server_redact_rejects_bad_scrub_terms():
    context = _context()
    status, payload = server.handle("/redact", {"text": "Seen", "scrub_terms": {"a": 1}}, context)
    assert status == 400
    assert "scrub_terms" in payload["error"]


def test_server_gatekeep_and_strip():
    context = _context(boilerplate=["FOOTER"], wipeout=[r"\.+"])
    assert server.handle("/gatekeep", {"text": "..."}, context) == (200, {"text": None, "discarded": True})
    assert server.handle("/gatekeep", {"text": " ok "}, context) == (200, {"text": "ok", "discarded": False})
    assert server.handle("/strip-boilerplate", {"text": "Normal FOOTER"}, context) == (200, {"text": "Normal"})


def test_server_validate_nhs():
    context = _context()
    assert server.handle("/validate-nhs", {"value": "943 476 5919"}, context) == (
        200, {"value": "9434765919", "valid": True},
    )
    assert server.handle("/validate-nhs", {"value": 9434765919}, context)[1]["valid"] is True
    assert server.handle("/validate-nhs", {}, context) == (200, {"value": None, "valid": False})


def test_server_reload():
    source = CountingSource(wipeout=[r"\.+"])
    context = _context(rule_source=source)
    status, payload = server.handle("/reload-wipeout", {}, context)
    assert status == 200
    assert payload == {"status": "reloaded", "diagnostic": None, "rules": 1}

    context.rule_source = BrokenSource()
    status, payload = server.handle("/reload-boilerplate", {}, context)
    assert payload["status"] == "error"
    assert payload["diagnostic"] == "rule store unavailable"


def test_server_unknown_path():
    assert server.handle("/nope", {}, _context()) == (404, {"error": "not found"})

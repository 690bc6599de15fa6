"""YAML/dict config loader for report-scrubber.

Supports loading from a YAML file or a plain dict (for embedding in a
larger pipeline config).

Example YAML:

    report_scrubber:
      lexicon:
        general: /srv/cdw/words_alpha.txt   # omitted lists use the bundled copy
        custom: /srv/cdw/custom_dictionary.txt
      boilerplate:
        - '\\*\\*\\* This exam record has been migrated from .+\\*\\*\\*'
      wipeout:
        - '\\.+'
      rule_source:
        type: sqlite            # "none", "file" or "sqlite"
        path: ~/.report-scrubber/rules.db
      scrub_terms:
        - Oxford
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any

from .context import RedactionContext
from .errors import ConfigError
from .lexicon import BundledSeedProvider, FileSeedProvider
from .rule_sources import FileRuleSource, NullRuleSource, SqliteRuleSource, StaticRuleSource

CONFIG_ENV = "REPORT_SCRUBBER_CONFIG"


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "report_scrubber" key or flat
    if "report_scrubber" in data:
        data = data["report_scrubber"] or {}
    if not isinstance(data, dict):
        raise ConfigError("report_scrubber config must be a mapping")

    lexicon = data.get("lexicon") or {}
    source = data.get("rule_source") or {}
    scrub_terms = data.get("scrub_terms") or []
    if isinstance(scrub_terms, str):
        scrub_terms = [t.strip() for t in scrub_terms.split(",") if t.strip()]

    source_type = source.get("type", "none")
    if source_type not in ("none", "static", "file", "sqlite"):
        raise ConfigError(f"unknown rule_source type: {source_type!r}")

    return {
        "lexicon": {
            name: lexicon.get(name)
            for name in ("general", "medical", "acronyms", "custom")
        },
        "include_bundled_boilerplate": data.get("include_bundled_boilerplate", True),
        "boilerplate": list(data.get("boilerplate") or []),
        "wipeout": list(data.get("wipeout") or []),
        "rule_source": {
            "type": source_type,
            "path": source.get("path", "rules.db"),
            "boilerplate_path": source.get("boilerplate_path"),
            "wipeout_path": source.get("wipeout_path"),
            "boilerplate": list(source.get("boilerplate") or []),
            "wipeout": list(source.get("wipeout") or []),
        },
        "scrub_terms": list(scrub_terms),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    try:
        with open(Path(path).expanduser(), encoding="utf-8") as f:
            return load_config(yaml.safe_load(f))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot load config {path}: {e}") from e


def load_from_env() -> dict[str, Any]:
    """Config from $REPORT_SCRUBBER_CONFIG, or defaults if unset."""
    path = os.environ.get(CONFIG_ENV)
    return load_from_yaml(path) if path else load_config({})


def _build_rule_source(cfg: dict[str, Any]):
    kind = cfg["type"]
    if kind == "sqlite":
        return SqliteRuleSource(cfg["path"])
    if kind == "file":
        return FileRuleSource(
            boilerplate_path=cfg["boilerplate_path"],
            wipeout_path=cfg["wipeout_path"],
        )
    if kind == "static":
        return StaticRuleSource(cfg["boilerplate"], cfg["wipeout"])
    return NullRuleSource()


def create_context(config: dict[str, Any]) -> RedactionContext:
    """Create a fully configured context from a config dict."""
    cfg = load_config(config)

    paths = cfg["lexicon"]
    if any(paths.values()):
        seeds = FileSeedProvider(**paths)
    else:
        seeds = BundledSeedProvider()

    try:
        return RedactionContext.create(
            seeds,
            boilerplate=cfg["boilerplate"],
            wipeout=cfg["wipeout"],
            rule_source=_build_rule_source(cfg["rule_source"]),
            include_bundled_boilerplate=cfg["include_bundled_boilerplate"],
        )
    except OSError as e:
        raise ConfigError(f"cannot load seed word list: {e}") from e

"""Tests for the tokenizer and the lexicon."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from report_scrubber import Lexicon, SpanKind, tokenize
from report_scrubber.lexicon import BundledSeedProvider, FileSeedProvider, english_words
from report_scrubber.tokenizer import words


# ── Tokenizer ────────────────────────────────────────────────────────

def test_spans_rejoin_to_input():
    text = "  Dr. J.  Bloggs -- re: x-ray (12/3) [REDACTED], e.g. ok...\n"
    assert "".join(s.text for s in tokenize(text)) == text


def test_span_offsets_match_text():
    text = "Seen by Dr. Bloggs."
    for span in tokenize(text):
        assert text[span.start:span.end] == span.text


def test_trailing_connectors_split_off():
    spans = tokenize("Dr.")
    assert [(s.kind, s.text) for s in spans] == [
        (SpanKind.WORD, "Dr"),
        (SpanKind.SEPARATOR, "."),
    ]


def test_connectors_never_start_a_word():
    assert words("-abc .def") == ["abc", "def"]


def test_connectors_continue_a_word():
    assert words("inter-costal e.g. x-rays") == ["inter-costal", "e.g", "x-rays"]


def test_digits_split_words():
    assert words("L1-L4 C5") == ["L", "L", "C"]


def test_marker_is_never_a_word():
    assert words("[REDACTED] normal [REDACTED].") == ["normal"]
    assert words("abc[REDACTED]def") == ["abc", "def"]


def test_unicode_letters_are_word_characters():
    assert words("Sjögren's naïve") == ["Sjögren", "s", "naïve"]


def test_empty_input():
    assert tokenize("") == []


# ── Lexicon ──────────────────────────────────────────────────────────

def test_lexicon_is_case_insensitive():
    lexicon = Lexicon.from_seeds(general=["Heart", "LUNG"], acronyms=["CCA"])
    assert "heart" in lexicon
    assert "Lung" in lexicon
    assert lexicon.contains("cca")
    assert "kidney" not in lexicon


def test_lexicon_is_sorted_and_deduplicated():
    lexicon = Lexicon(["b", "A", "a", " c ", ""])
    assert list(lexicon) == ["a", "b", "c"]
    assert len(lexicon) == 3


def test_lexicon_merges_all_seed_lists():
    lexicon = Lexicon.from_seeds(
        general=["normal"], medical=["carotid"], acronyms=["TKR"], custom=["cephaled"]
    )
    for word in ("normal", "carotid", "tkr", "cephaled"):
        assert word in lexicon


def test_lexicon_rejects_non_strings():
    assert 1 not in Lexicon(["1"])


def test_bundled_seed_lists_load():
    seeds = BundledSeedProvider().load()
    assert seeds.general and seeds.medical and seeds.acronyms and seeds.custom
    lexicon = Lexicon.from_provider(BundledSeedProvider())
    assert "carotid" in lexicon
    assert "cca" in lexicon
    assert "a" in lexicon


def test_bundled_general_list_includes_english_dictionary():
    seeds = BundledSeedProvider().load()
    assert len(seeds.general) > 50000
    # proper nouns from the dictionary are left out
    assert all(word.islower() for word in english_words())


def test_file_seed_provider_overrides_one_list(tmp_path):
    general = tmp_path / "general.txt"
    general.write_text("zebra\nquokka\n\n", encoding="utf-8")
    lexicon = Lexicon.from_provider(FileSeedProvider(general=general))
    assert "quokka" in lexicon
    assert "carotid" in lexicon      # bundled medical list still used
    assert "the" not in lexicon      # bundled general list replaced


def test_file_seed_provider_missing_file(tmp_path):
    with pytest.raises(OSError):
        FileSeedProvider(general=tmp_path / "missing.txt").load()

from __future__ import annotations

import pytest

from diaryx.links import (
    ContentLink,
    build_reference_index,
    format_link,
    normalize_variants,
    parse_link,
)
from diaryx.metadata import Many, Single, normalize_metadata_list


def test_parse_markdown_link():
    link = parse_link("  [Intro](intro.md)  ")
    assert link.label == "Intro"
    assert link.target == "intro.md"
    assert link.raw == "  [Intro](intro.md)  "


def test_parse_link_empty_label_defaults_to_target():
    link = parse_link("[](child.md)")
    assert link.label == "child.md"
    assert link.target == "child.md"


def test_parse_link_strips_angle_brackets_from_target():
    assert parse_link("[Spaced](<my file.md>)").target == "my file.md"
    bare = parse_link("<has space.md>")
    assert bare.target == "has space.md"
    assert bare.label == "has space.md"


def test_parse_bare_target():
    link = parse_link("plain-target.md")
    assert link == ContentLink(raw="plain-target.md", label="plain-target.md", target="plain-target.md")


def test_malformed_link_degrades_to_bare_target():
    link = parse_link("[broken](x")
    assert link.target == "[broken](x"
    assert link.label == "[broken](x"


def test_format_link_wraps_targets_with_whitespace():
    assert format_link("Intro", "intro.md") == "[Intro](intro.md)"
    assert format_link("", "my note.md") == "[my note.md](<my note.md>)"
    assert format_link("  ", " a.md ") == "[a.md](a.md)"


@pytest.mark.parametrize("raw", ["[Intro](intro.md)", "plain-target.md", "<has space.md>"])
def test_format_then_parse_keeps_target(raw):
    parsed = parse_link(raw)
    again = parse_link(format_link(parsed.label, parsed.target))
    assert again.target == parsed.target


def test_normalize_variants_case_and_extension():
    variants = normalize_variants("Notes/Intro.MD")
    assert "notes/intro.md" in variants
    assert "notes/intro" in variants


def test_normalize_variants_percent_decoding():
    variants = normalize_variants("<My%20Note.md>")
    assert variants[0] == "my%20note.md"
    assert "my note.md" in variants
    assert "my%20note" in variants


def test_normalize_variants_tolerates_bad_escapes():
    assert normalize_variants("%FF.md") == ["%ff.md", "%ff"]
    assert "100%" in normalize_variants("100%")


def test_normalize_variants_empty_input():
    assert normalize_variants("   ") == []
    assert normalize_variants("<>") == []


def test_reference_index_prefers_href_over_title(make_note):
    notes = [
        make_note("a", title="Other"),
        make_note("b", source_name="b.md"),
    ]
    index = build_reference_index(notes)
    assert index.resolve(parse_link("[Other](b.md)")) == "b"
    assert index.resolve(parse_link("[Other](nowhere.md)")) == "a"
    assert index.resolve(parse_link("nowhere.md")) is None


def test_reference_index_first_claim_wins(make_note):
    notes = [
        make_note("first", source_name="dup.md", aliases=["Shared"]),
        make_note("second", source_name="DUP.md", title="Shared"),
    ]
    index = build_reference_index(notes)
    assert index.href_index["dup.md"] == "first"
    assert index.title_index["shared"] == "first"


def test_reference_index_matches_aliases_and_extensionless_targets(make_note):
    notes = [make_note("n1", source_name="Daily Log.md", title="Daily", aliases=["Log", " "])]
    index = build_reference_index(notes)
    assert index.resolve(parse_link("Daily%20Log")) == "n1"
    assert index.resolve(parse_link("[log](unknown)")) == "n1"
    assert "" not in index.title_index


def test_normalize_metadata_list_shapes():
    assert normalize_metadata_list("a\r\nb\n\n  c  ") == ["a", "b", "c"]
    assert normalize_metadata_list(["a\nb", " ", 3]) == ["a", "b", "3"]
    assert normalize_metadata_list(None) == []
    assert normalize_metadata_list(Single("x\ny")) == ["x", "y"]
    assert normalize_metadata_list(Many(("p", "q\nr"))) == ["p", "q", "r"]

"""Tests for the plain-text to Markdown reshaper."""

from __future__ import annotations

import pytest

from markdown_format import format_as_markdown, looks_like_markdown


@pytest.mark.parametrize(
    "text",
    [
        "# Summary\nSOME SHOUTING\nLabel:",
        "Intro\n```\ncode\n```\n\nHEADER",
        "Price in C#\n\nTOTAL",
    ],
)
def test_markdown_input_is_returned_unchanged(text: str) -> None:
    assert looks_like_markdown(text)
    assert format_as_markdown(text) == text


def test_caps_line_after_blank_becomes_header() -> None:
    assert format_as_markdown("\nTOTAL BUDGET\n1000 dollars") == "\n## TOTAL BUDGET\n1000 dollars"


def test_first_line_is_never_a_header() -> None:
    assert format_as_markdown("TOTAL BUDGET\n\n1000 dollars") == "TOTAL BUDGET\n\n1000 dollars"


def test_caps_line_without_preceding_blank_stays_plain() -> None:
    assert format_as_markdown("Intro\nTOTAL BUDGET") == "Intro\nTOTAL BUDGET"


def test_label_lines_become_subheaders() -> None:
    text = "Overview\nSpeakers:\n- Alice\n- Bob"
    assert format_as_markdown(text) == "Overview\n### Speakers:\n- Alice\n- Bob"


def test_caps_label_is_a_subheader_not_a_header() -> None:
    assert format_as_markdown("Intro\n\nSPEAKERS:") == "Intro\n\n### SPEAKERS:"


def test_long_lines_are_not_promoted() -> None:
    long_caps = "A" * 60
    long_label = "b" * 60 + ":"
    text = f"Intro\n\n{long_caps}\n{long_label}"
    assert format_as_markdown(text) == text


def test_lines_are_trimmed_and_list_items_kept() -> None:
    text = "Intro\n   1 first item  \n* second item"
    assert format_as_markdown(text) == "Intro\n1 first item\n* second item"


def test_second_pass_is_a_no_op() -> None:
    once = format_as_markdown("Intro\n\nSUMMARY\nNotes:\nplain text")
    assert once == "Intro\n\n## SUMMARY\n### Notes:\nplain text"
    assert format_as_markdown(once) == once


def test_empty_text() -> None:
    assert format_as_markdown("") == ""

"""Tests for sitegen.parser."""

from __future__ import annotations

from sitegen.models import FileArtifact
from sitegen.parser import ArtifactParser, parse_artifacts


def test_parse_extracts_every_block_in_order() -> None:
    text = (
        "Sure! Here is the project.\n"
        '<file name="index.html">\n  <div id="root"></div>\n</file>\n'
        "Some commentary between blocks.\n"
        '<file name="src/app.js">console.log("hi");</file>\n'
        '<file name="package.json">\n{"name": "todo"}\n\n</file>\n'
        "That's all."
    )

    artifacts = parse_artifacts(text)

    assert artifacts == [
        FileArtifact("index.html", b'<div id="root"></div>'),
        FileArtifact("src/app.js", b'console.log("hi");'),
        FileArtifact("package.json", b'{"name": "todo"}'),
    ]


def test_parse_returns_empty_list_without_blocks() -> None:
    assert parse_artifacts("I cannot help with that request.") == []
    assert parse_artifacts("") == []


def test_parse_trims_name_attribute() -> None:
    artifacts = parse_artifacts('<file name="  src/main.tsx  ">x</file>')

    assert [artifact.relative_path for artifact in artifacts] == ["src/main.tsx"]


def test_parse_skips_blocks_without_usable_name() -> None:
    text = (
        "<file>orphan body</file>"
        '<file name="">empty name</file>'
        "<file name=unquoted>bad attribute</file>"
        '<file name="ok.txt">kept</file>'
    )

    artifacts = parse_artifacts(text)

    assert artifacts == [FileArtifact("ok.txt", b"kept")]


def test_parse_drops_block_interrupted_by_next_opening_tag() -> None:
    text = (
        '<file name="broken.js">never closed\n'
        '<file name="a.js">const a = 1;</file>\n'
        '<file name="b.js">const b = 2;</file>'
    )

    artifacts = parse_artifacts(text)

    assert [artifact.relative_path for artifact in artifacts] == ["a.js", "b.js"]
    assert artifacts[0].content == b"const a = 1;"


def test_parse_ignores_trailing_unterminated_block() -> None:
    text = '<file name="a.css">body {}</file>\n<file name="b.css">truncated output'

    artifacts = parse_artifacts(text)

    assert artifacts == [FileArtifact("a.css", b"body {}")]


def test_parse_accepts_single_quotes_and_extra_attributes() -> None:
    text = "<file lang='js' name='util.js'>export {};</file>"

    assert parse_artifacts(text) == [FileArtifact("util.js", b"export {};")]


def test_parse_keeps_unicode_content_as_utf8() -> None:
    artifacts = ArtifactParser().parse('<file name="README.md">Café ☕</file>')

    assert artifacts[0].content.decode("utf-8") == "Café ☕"


def test_parse_does_not_confuse_similar_tags() -> None:
    text = '<files name="x">nope</files><file name="y">yes</file>'

    assert parse_artifacts(text) == [FileArtifact("y", b"yes")]

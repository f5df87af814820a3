"""Tests for the prompt builder."""

from __future__ import annotations

from sitegen.parser import parse_artifacts
from sitegen.prompting import build_prompt
from sitegen.prompting.constants import REQUIRED_FILES


def test_prompt_wraps_request_between_instructions() -> None:
    prompt = build_prompt("  A portfolio site with a dark theme \n")

    assert prompt.startswith("You are a senior software engineer.")
    assert "<user_request>\nA portfolio site with a dark theme\n</user_request>" in prompt
    assert prompt.rstrip().endswith("</instructions>")
    assert prompt.index("</file_examples>") < prompt.index("<user_request>")


def test_prompt_lists_every_required_file() -> None:
    prompt = build_prompt("anything")

    for name in REQUIRED_FILES:
        assert f"   - {name}" in prompt


def test_examples_use_the_file_block_protocol() -> None:
    examples = parse_artifacts(build_prompt("anything"))

    assert [artifact.relative_path for artifact in examples] == [
        "FILENAME",
        "vite.config.js",
        "package.json",
        "tailwind.config.js",
    ]
    assert b"{{" not in examples[2].content

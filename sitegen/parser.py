"""Extraction of file artifacts from `<file name="...">` tagged blocks.

The protocol is a flat sequence of blocks embedded in arbitrary text::

    block := "<file" attrs ">" body "</file>"
    attrs := { whitespace key "=" quoted-value }

Blocks never nest. Recovery is local to each block: an opening tag without a
usable ``name`` attribute is consumed together with its body and skipped, an
opening tag that is followed by another opening tag before any closing tag is
treated as unterminated and dropped, and an opening tag with no closing tag at
all is dropped. Surrounding text is ignored.
"""

from __future__ import annotations

import re
from typing import Iterator, List, Optional

from .logging import get_logger
from .models import FileArtifact

_OPEN_TAG = re.compile(r"<file(?=[\s>/])([^<>]*)>", re.IGNORECASE)
_CLOSE_TAG = re.compile(r"</file\s*>", re.IGNORECASE)
_ATTRIBUTE = re.compile(r"""([A-Za-z_][\w\-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")


class ArtifactParser:
    """Deterministic, side-effect free scanner for the tagged-block protocol."""

    def __init__(self) -> None:
        self.logger = get_logger("parser")

    def parse(self, text: str) -> List[FileArtifact]:
        artifacts = list(self.iter_artifacts(text))
        self.logger.debug("Parsed %d file block(s)", len(artifacts))
        return artifacts

    def iter_artifacts(self, text: str) -> Iterator[FileArtifact]:
        if not text:
            return
        position = 0
        while True:
            opening = _OPEN_TAG.search(text, position)
            if opening is None:
                return
            closing = _CLOSE_TAG.search(text, opening.end())
            if closing is None:
                self.logger.debug("Unterminated file block at offset %d", opening.start())
                return
            following = _OPEN_TAG.search(text, opening.end(), closing.start())
            if following is not None:
                self.logger.debug(
                    "File block at offset %d is not closed before the next block",
                    opening.start(),
                )
                position = following.start()
                continue

            position = closing.end()
            name = _extract_name(opening.group(1))
            if name is None:
                self.logger.debug("Skipping file block without a name at offset %d", opening.start())
                continue
            body = text[opening.end() : closing.start()]
            yield FileArtifact(relative_path=name, content=body.strip().encode("utf-8"))


def _extract_name(attributes: str) -> Optional[str]:
    for match in _ATTRIBUTE.finditer(attributes):
        if match.group(1).lower() != "name":
            continue
        value = match.group(2) if match.group(2) is not None else match.group(3)
        value = (value or "").strip()
        return value or None
    return None


def parse_artifacts(text: str) -> List[FileArtifact]:
    """Return every well-formed file block found in ``text``, in order."""
    return ArtifactParser().parse(text)


__all__ = ["ArtifactParser", "parse_artifacts"]

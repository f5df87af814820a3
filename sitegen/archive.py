"""Packaging of the workspace into a downloadable zip archive."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Iterable

from .errors import EmptyWorkspaceError

ARCHIVE_NAME = "site.zip"
EXCLUDED_DIRS = frozenset({"node_modules", ".git"})


def iter_workspace_files(root: Path) -> Iterable[Path]:
    if not root.is_dir():
        return []
    return sorted(
        path
        for path in root.rglob("*")
        if path.is_file() and not EXCLUDED_DIRS.intersection(path.relative_to(root).parts)
    )


def build_workspace_zip(root: Path) -> io.BytesIO:
    """Return an in-memory zip of the workspace, rewound and ready to stream."""
    files = list(iter_workspace_files(Path(root)))
    if not files:
        raise EmptyWorkspaceError("No files to download")

    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
    ) as zf:
        for path in files:
            zf.write(path, arcname=path.relative_to(root).as_posix())
    buffer.seek(0)
    return buffer


__all__ = ["ARCHIVE_NAME", "build_workspace_zip", "iter_workspace_files"]

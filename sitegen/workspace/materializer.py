"""Replacement of the on-disk workspace with a parsed artifact set."""

from __future__ import annotations

import hashlib
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence

from ..errors import WorkspaceError
from ..failsafe import default_project_files
from ..logging import get_logger
from ..models import FileArtifact


@dataclass
class MaterializeReport:
    """Summary of one materialization."""

    root: Path
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    used_default: bool = False
    version: int = 0


class WorkspaceMaterializer:
    """Owns the single generated-project directory."""

    def __init__(self, root: Path, *, preview_port: int = 5173) -> None:
        self.root = Path(root).expanduser().resolve()
        self.preview_port = preview_port
        self.version = 0
        self.logger = get_logger("workspace")

    def materialize(self, artifacts: Sequence[FileArtifact]) -> MaterializeReport:
        """Destroy the current workspace and write ``artifacts`` into a fresh one.

        An empty sequence, or one in which no file could be written, yields the
        default project instead.
        """
        self._reset_root()
        report = MaterializeReport(root=self.root)

        for artifact in artifacts:
            target = self.resolve_path(artifact.relative_path)
            if target is None:
                self.logger.warning("Rejected unsafe path %r", artifact.relative_path)
                report.skipped.append(artifact.relative_path)
                continue
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(artifact.content)
            except OSError as exc:
                self.logger.warning("Failed to write %s: %s", artifact.relative_path, exc)
                report.skipped.append(artifact.relative_path)
                continue
            relative = target.relative_to(self.root).as_posix()
            self.logger.info("Created %s", relative)
            report.written.append(relative)

        if not report.written:
            if artifacts:
                self.logger.warning("No generated file could be written; using default project")
            else:
                self.logger.warning("No files found in response; creating default project")
            report.written = self._write_default_files()
            report.used_default = True

        self.version += 1
        report.version = self.version
        return report

    def materialize_default(self) -> MaterializeReport:
        return self.materialize([])

    def resolve_path(self, relative_path: str) -> Optional[Path]:
        """Map a protocol path onto the workspace, or ``None`` when it would escape it."""
        cleaned = relative_path.strip().replace("\\", "/")
        if not cleaned or "\x00" in cleaned:
            return None
        pure = PurePosixPath(cleaned)
        if pure.is_absolute() or ".." in pure.parts:
            return None
        parts = [part for part in pure.parts if part not in ("", ".")]
        if not parts or ":" in parts[0]:
            return None
        try:
            candidate = self.root.joinpath(*parts).resolve()
        except (OSError, ValueError):
            return None
        if candidate == self.root or not candidate.is_relative_to(self.root):
            return None
        return candidate

    def files(self) -> List[str]:
        """Return the workspace's files as sorted POSIX paths."""
        if not self.root.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file() and not _is_install_output(path.relative_to(self.root).parts)
        )

    def fingerprint(self) -> str:
        digest = hashlib.sha256()
        for relative in self.files():
            digest.update(relative.encode("utf-8"))
            digest.update(b"\0")
            digest.update(hashlib.sha256((self.root / relative).read_bytes()).digest())
        return digest.hexdigest()

    def is_empty(self) -> bool:
        return not self.root.is_dir() or not any(self.root.iterdir())

    # ------------------------------------------------------------------
    # Internal helpers

    def _reset_root(self) -> None:
        try:
            if self.root.exists():
                if self.root.is_dir() and not self.root.is_symlink():
                    shutil.rmtree(self.root)
                else:
                    self.root.unlink()
            self.root.mkdir(parents=True)
        except OSError as exc:
            raise WorkspaceError(f"Unable to reset workspace {self.root}: {exc}") from exc

    def _write_default_files(self) -> List[str]:
        written: List[str] = []
        for name, content in default_project_files(port=self.preview_port).items():
            target = self.root / name
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as exc:
                raise WorkspaceError(f"Unable to write default project file {name}: {exc}") from exc
            written.append(name)
        return written


def _is_install_output(parts: Iterable[str]) -> bool:
    first = next(iter(parts), "")
    return first == "node_modules"


__all__ = ["MaterializeReport", "WorkspaceMaterializer"]

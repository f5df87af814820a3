"""Core data models shared across sitegen components."""

import hashlib
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GenerationRequest:
    """One inbound request to generate a project."""

    prompt: str

    @property
    def identity(self) -> str:
        return hashlib.sha256(self.prompt.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FileArtifact:
    """A single file extracted from generated text."""

    relative_path: str
    content: bytes


@dataclass
class AcquiredContent:
    """Raw model output plus whether it was replaced by the fallback payload."""

    text: str
    degraded: bool = False
    attempts: int = 1


@dataclass
class GenerationOutcome:
    """What the coordinator reports for a successful request."""

    preview_url: str
    note: Optional[str] = None
    used_fallback: bool = False
    cached: bool = False

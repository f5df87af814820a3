"""Generated-project workspace management."""

from .materializer import MaterializeReport, WorkspaceMaterializer

__all__ = ["MaterializeReport", "WorkspaceMaterializer"]

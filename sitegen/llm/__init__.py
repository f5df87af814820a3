"""Remote generation service adapters."""

from .retry import RetryPolicy
from .runner import GeminiRunner

__all__ = ["GeminiRunner", "RetryPolicy"]

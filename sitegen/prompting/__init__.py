"""Prompt construction for the generation service."""

from .builder import build_prompt

__all__ = ["build_prompt"]

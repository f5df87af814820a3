"""Prompt-to-preview web project generator."""

__version__ = "0.1.0"

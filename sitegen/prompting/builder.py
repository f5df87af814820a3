"""Static prompt template sent to the generation service."""

from __future__ import annotations

from .constants import BASE_PROMPT, CLOSING_INSTRUCTIONS


def build_prompt(user_prompt: str) -> str:
    """Wrap the user's request in the project-generation instructions."""
    request = user_prompt.strip()
    return (
        f"{BASE_PROMPT.strip()}\n\n"
        f"<user_request>\n{request}\n</user_request>\n\n"
        f"<instructions>\n{CLOSING_INSTRUCTIONS.strip()}\n</instructions>"
    )


__all__ = ["build_prompt"]

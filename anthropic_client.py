"""Thin wrapper around the Anthropic Messages API."""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic

LOGGER = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"


def claude_complete(prompt: str, max_tokens: int = 1024, temperature: float = 0.3) -> str:
    """Send a single user prompt to Claude and return the reply text.

    Args:
        prompt: Full instruction text, sent as the only user message.
        max_tokens: Hard cap on output tokens.
        temperature: Sampling temperature.
    """
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is required")

    claude_model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
    client = anthropic.Anthropic(api_key=api_key)

    kwargs: dict[str, Any] = {
        "model": claude_model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [{"role": "user", "content": prompt}],
    }

    LOGGER.debug("Calling Claude model=%s max_tokens=%s", claude_model, max_tokens)
    response = client.messages.create(**kwargs)
    if not response.content:
        raise RuntimeError("Claude returned an empty response")
    return response.content[0].text.strip()

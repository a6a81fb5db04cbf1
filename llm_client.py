"""Generative-model client used by every model-backed pipeline step."""

from __future__ import annotations

import json
import logging
import os
from json import JSONDecodeError
from typing import Any, Callable

from openai import OpenAI

LOGGER = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

# complete(prompt, max_tokens, temperature) -> reply text
ModelClient = Callable[[str, int, float], str]


def complete(prompt: str, max_tokens: int = 1024, temperature: float = 0.3) -> str:
    """Send ``prompt`` to the configured provider and return the raw reply text.

    ``LLM_PROVIDER`` selects ``anthropic`` (default) or ``openai``. Transport,
    auth and quota errors propagate; callers decide how to degrade.
    """
    provider = os.getenv("LLM_PROVIDER", "anthropic").strip().lower()

    if provider == "openai":
        return _openai_complete(prompt, max_tokens, temperature)
    if provider == "anthropic":
        from anthropic_client import claude_complete  # noqa: PLC0415

        return claude_complete(prompt, max_tokens=max_tokens, temperature=temperature)

    raise RuntimeError(f"Unsupported LLM_PROVIDER: {provider}")


def provider_configured() -> bool:
    """Return True if the API key for the configured provider is present."""
    provider = os.getenv("LLM_PROVIDER", "anthropic").strip().lower()
    key_name = "OPENAI_API_KEY" if provider == "openai" else "ANTHROPIC_API_KEY"
    return bool(os.getenv(key_name))


def _openai_complete(prompt: str, max_tokens: int, temperature: float) -> str:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is required")

    model = os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
    client = OpenAI(api_key=api_key)

    LOGGER.debug("Calling OpenAI model=%s max_tokens=%s", model, max_tokens)
    response = client.chat.completions.create(
        model=model,
        temperature=temperature,
        max_completion_tokens=max_tokens,
        messages=[{"role": "user", "content": prompt}],
    )

    content = response.choices[0].message.content
    if not content:
        raise RuntimeError("OpenAI returned an empty response")
    return content.strip()


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse possibly noisy model output into a JSON object."""
    try:
        parsed = json.loads(content)
    except JSONDecodeError:
        parsed = _extract_first_json_object(content)

    if not isinstance(parsed, dict):
        raise RuntimeError("Expected JSON object from model response")
    return parsed


def _extract_first_json_object(content: str) -> dict[str, Any]:
    """Extract the first decodable JSON object from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    raise RuntimeError("Could not extract valid JSON object from model output")

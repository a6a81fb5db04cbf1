"""Error categories surfaced to callers of the pipeline."""

from __future__ import annotations


class PaperMindError(RuntimeError):
    """Base class for failures the pipeline reports instead of absorbing."""


class InputError(PaperMindError):
    """Required caller input is missing or invalid; raised before any external call."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class RetrievalError(PaperMindError):
    """The literature feed could not be queried or its response could not be read."""

    code = "RETRIEVAL_FAILED"


class RetrievalTimeoutError(RetrievalError):
    """The literature feed did not answer within the transport timeout."""

    code = "RETRIEVAL_TIMEOUT"

"""Ordered degradation for model-backed text-to-structure tasks.

A task asks the model once, then offers the reply to each strategy in turn.
The first strategy that reports a usable value wins. If the model call itself
fails, or no strategy can use the reply, the task's static fallback builds
the result without the model, so callers always get a value back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, NamedTuple, Sequence, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TierOutcome(Generic[T]):
    """Tagged result of one strategy: a usable value, or a reason to fall back."""

    value: T | None = None
    reason: str = ""

    @property
    def usable(self) -> bool:
        return self.value is not None

    @classmethod
    def success(cls, value: T) -> TierOutcome[T]:
        return cls(value=value)

    @classmethod
    def needs_fallback(cls, reason: str) -> TierOutcome[T]:
        return cls(reason=reason)


class Strategy(NamedTuple, Generic[T]):
    name: str
    attempt: Callable[[str], TierOutcome[T]]


def run_tiers(
    task: str,
    request: Callable[[], str],
    strategies: Sequence[Strategy[T]],
    fallback: Callable[[], T],
) -> T:
    """Run ``request`` once and degrade through ``strategies`` to ``fallback``.

    Args:
        task: Label used in log lines.
        request: Performs the model call and returns the raw reply text.
        strategies: Parsers tried in order against the reply.
        fallback: Builds a result without the model; must not raise.
    """
    try:
        reply = request()
    except Exception as exc:
        LOGGER.warning("%s: model call failed, using static fallback: %s", task, exc)
        return fallback()

    LOGGER.debug("%s: raw model reply: %s", task, reply)

    for strategy in strategies:
        try:
            outcome = strategy.attempt(reply)
        except Exception as exc:
            outcome = TierOutcome.needs_fallback(str(exc))

        if outcome.usable:
            LOGGER.info("%s: %s tier produced the result", task, strategy.name)
            return outcome.value
        LOGGER.warning("%s: %s tier unusable: %s", task, strategy.name, outcome.reason)

    LOGGER.warning("%s: all model tiers unusable, using static fallback", task)
    return fallback()

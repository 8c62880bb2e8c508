"""Ordered fallback over named attempts.

Both vector-store fallback chains (structured client → raw HTTP, and
``upsert`` → ``add``) are expressed as a list of :class:`Attempt` objects run
by :func:`first_success`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """One named strategy in a fallback chain."""

    name: str
    run: Callable[[], T]


class AttemptsExhausted(Exception):
    """Every attempt failed.  ``diagnostics`` has one line per attempt."""

    def __init__(self, diagnostics: list[str]) -> None:
        self.diagnostics = list(diagnostics)
        super().__init__("; ".join(self.diagnostics) or "no attempts were made")


def first_success(
    attempts: Sequence[Attempt[T]],
    *,
    logger: logging.Logger,
    describe: Callable[[BaseException], str] = str,
) -> tuple[str, T]:
    """Run *attempts* in order and return ``(name, result)`` of the first success.

    Parameters
    ----------
    attempts:
        Strategies in priority order.
    logger:
        Receives one warning per failed attempt.
    describe:
        Turns a failure into a diagnostic line.

    Raises
    ------
    AttemptsExhausted
        Chained from the failure of the last attempt.
    """
    diagnostics: list[str] = []
    for position, attempt in enumerate(attempts, 1):
        try:
            result = attempt.run()
        except Exception as exc:
            detail = describe(exc)
            diagnostics.append(f"{attempt.name}: {detail}")
            if position == len(attempts):
                logger.error("Attempt %r failed and no fallback remains: %s", attempt.name, detail)
                raise AttemptsExhausted(diagnostics) from exc
            logger.warning(
                "Attempt %r failed (%s), trying %r",
                attempt.name,
                detail,
                attempts[position].name,
            )
            continue
        if position > 1:
            logger.info("Attempt %r succeeded after %d failure(s)", attempt.name, position - 1)
        return attempt.name, result
    raise AttemptsExhausted(diagnostics)

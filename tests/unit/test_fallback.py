"""Unit tests for the ordered fallback helper."""

from __future__ import annotations

import logging

import pytest

from rag_ingest.retrieval.fallback import Attempt, AttemptsExhausted, first_success

logger = logging.getLogger("test.fallback")


def _fail(message: str):
    def run():
        raise RuntimeError(message)

    return run


def test_first_attempt_wins() -> None:
    calls: list[str] = []

    def second() -> str:
        calls.append("second")
        return "b"

    name, result = first_success(
        [Attempt("first", lambda: "a"), Attempt("second", second)], logger=logger
    )

    assert (name, result) == ("first", "a")
    assert calls == []


def test_falls_through_to_next(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="test.fallback"):
        name, result = first_success(
            [Attempt("upsert", _fail("422")), Attempt("add", lambda: 200)], logger=logger
        )

    assert (name, result) == ("add", 200)
    assert "upsert" in caplog.text


def test_exhaustion_collects_diagnostics() -> None:
    with pytest.raises(AttemptsExhausted) as excinfo:
        first_success(
            [Attempt("one", _fail("boom")), Attempt("two", _fail("bang"))],
            logger=logger,
            describe=lambda exc: f"<{exc}>",
        )

    assert excinfo.value.diagnostics == ["one: <boom>", "two: <bang>"]
    assert str(excinfo.value) == "one: <boom>; two: <bang>"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_empty_chain_is_exhausted() -> None:
    with pytest.raises(AttemptsExhausted, match="no attempts"):
        first_success([], logger=logger)

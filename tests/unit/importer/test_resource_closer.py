"""Unit tests for deterministic teardown."""

from __future__ import annotations

from importer.resource_closer import ResourceCloser, close_all


class _RecordingHandle:
    def __init__(self, name: str, log: list[str], error: Exception | None = None) -> None:
        self._name = name
        self._log = log
        self._error = error

    def close(self) -> None:
        self._log.append(self._name)
        if self._error is not None:
            raise self._error


def test_close_runs_in_registration_order_past_failures() -> None:
    """Every handle should close in order even when some fail."""
    log: list[str] = []
    first = OSError("first failure")
    closer = ResourceCloser()
    closer.register(_RecordingHandle("base", log))
    closer.register(_RecordingHandle("replay", log, first))
    closer.register(_RecordingHandle("gzip", log, ValueError("second failure")))
    closer.register(_RecordingHandle("replay-2", log))

    error = closer.close()

    assert log == ["base", "replay", "gzip", "replay-2"]
    assert error is first


def test_close_is_idempotent() -> None:
    """A second teardown should do nothing and report nothing."""
    log: list[str] = []
    closer = ResourceCloser()
    closer.register(_RecordingHandle("base", log, OSError("boom")))

    first_result = closer.close()
    second_result = closer.close()

    assert first_result is not None and second_result is None
    assert log == ["base"] and closer.closed


def test_close_all_returns_none_when_everything_closes() -> None:
    """Ad hoc handle lists should close cleanly."""
    log: list[str] = []

    assert close_all([_RecordingHandle("a", log), _RecordingHandle("b", log)]) is None
    assert log == ["a", "b"]

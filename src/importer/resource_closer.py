"""Deterministic teardown of decode chain links."""

from __future__ import annotations

from typing import Iterable, Protocol

from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class Closable(Protocol):
    """Anything with a close method."""

    def close(self) -> object: ...


class ResourceCloser:
    """Close registered handles in registration order, exactly once.

    Teardown continues past individual failures. Every failure is logged;
    the first one is returned as the reported cause.
    """

    def __init__(self) -> None:
        self._handles: list[Closable] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether teardown already ran."""
        return self._closed

    def register(self, handle: Closable) -> None:
        """Track a handle for teardown."""
        self._handles.append(handle)

    def close(self) -> Exception | None:
        """Close every handle.

        Returns:
            The first close error, or None. A repeated call returns None.
        """
        if self._closed:
            return None
        self._closed = True
        return close_all(self._handles)


def close_all(handles: Iterable[Closable]) -> Exception | None:
    """Close handles in order and return the first failure.

    Args:
        handles: Handles to close.

    Returns:
        First exception raised by a close call, or None.
    """
    first_error: Exception | None = None
    for index, handle in enumerate(handles):
        try:
            handle.close()
        except Exception as error:
            _LOGGER.warning(
                "close_failed",
                index=index,
                handle=type(handle).__name__,
                error=str(error),
            )
            if first_error is None:
                first_error = error
    return first_error

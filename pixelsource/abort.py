"""Cooperative cancellation of pixel reads.

Reads accept an :class:`AbortSignal` and check it every time they resume from a
suspension point. A signal is shared by a logical group of requests, e.g. all tiles
of one viewport update; superseding the group aborts the signal and every read that
resumes afterwards raises :class:`~pixelsource.errors.OperationAborted`.
"""

from __future__ import annotations

import logging

from pixelsource.errors import OperationAborted

__all__ = ["AbortSignal", "RequestGroup", "throw_if_aborted"]

logger = logging.getLogger(__name__)


class AbortSignal:
    """A one-shot cancellation token."""

    __slots__ = ("_aborted",)

    def __init__(self) -> None:
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        self._aborted = True

    def throw_if_aborted(self) -> None:
        if self._aborted:
            raise OperationAborted()

    def __repr__(self) -> str:
        return f"<AbortSignal aborted={self._aborted}>"


def throw_if_aborted(signal: AbortSignal | None) -> None:
    """Raise OperationAborted if ``signal`` is given and has been aborted."""
    if signal is not None:
        signal.throw_if_aborted()


class RequestGroup:
    """Hands out one signal per generation of requests.

    Calling :meth:`next_signal` aborts the signal of the previous generation, so reads
    issued for a superseded view stop at their next suspension point.

    Examples
    --------
    >>> group = RequestGroup()
    >>> first = group.next_signal()
    >>> second = group.next_signal()
    >>> first.aborted, second.aborted
    (True, False)
    """

    def __init__(self) -> None:
        self._current: AbortSignal | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self) -> AbortSignal | None:
        return self._current

    def next_signal(self) -> AbortSignal:
        if self._current is not None:
            self._current.abort()
            logger.debug("superseded request generation %d", self._generation)
        self._generation += 1
        self._current = AbortSignal()
        return self._current

    def cancel(self) -> None:
        if self._current is not None:
            self._current.abort()
            self._current = None

from __future__ import annotations
import threading

from .errors import CancelledError


class ProgressRatio:
    """Progress/cancellation sink shared between a worker and its caller.

    The worker writes the fraction done and polls the cancel flag; the caller
    (typically a UI thread) reads the fraction and may request cancellation.
    A float attribute and a ``threading.Event`` are all that is shared.
    """

    def __init__(self, text: str = "") -> None:
        self.text = text
        self._fraction = 0.0
        self._cancel = threading.Event()

    @property
    def fraction(self) -> float:
        return self._fraction

    def set(self, value: float, maximum: float = 1.0) -> None:
        if maximum <= 0:
            self._fraction = 0.0
            return
        self._fraction = min(1.0, max(0.0, float(value) / float(maximum)))

    def set_text(self, text: str) -> None:
        self.text = text

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def check_cancelled(self) -> None:
        if self._cancel.is_set():
            raise CancelledError()


def check_cancelled(progress: ProgressRatio | None) -> None:
    """Raise ``CancelledError`` if ``progress`` exists and was cancelled."""
    if progress is not None and progress.cancelled:
        raise CancelledError()


def report(progress: ProgressRatio | None, value: float, maximum: float) -> None:
    if progress is not None:
        progress.set(value, maximum)

"""Per-request accumulation of streamed model fragments."""

from __future__ import annotations

from typing import Callable, Iterable

from core.sanitizer import finalize, sanitize_for_display


class StreamAccumulator:
    """
    Append-only buffer for one recognition request.

    Every append recomputes the display text from the whole buffer and
    pushes it to on_update before returning. finish() computes the final
    text once; the buffer is closed afterwards.
    """

    def __init__(self, on_update: Callable[[str], None] | None = None) -> None:
        self._parts: list[str] = []
        self._on_update = on_update
        self._final: str | None = None

    @property
    def raw(self) -> str:
        return "".join(self._parts)

    @property
    def display(self) -> str:
        return sanitize_for_display(self.raw)

    @property
    def finished(self) -> bool:
        return self._final is not None

    def append(self, fragment: str) -> str:
        if self._final is not None:
            raise RuntimeError("Cannot append to a finished stream.")
        if fragment:
            self._parts.append(fragment)
        display = self.display
        if self._on_update is not None:
            self._on_update(display)
        return display

    def finish(self) -> str:
        if self._final is None:
            self._final = finalize(self.raw)
        return self._final


def accumulate(
    fragments: Iterable[str],
    on_update: Callable[[str], None] | None = None,
) -> str:
    """Feed fragments through a fresh accumulator and return the final text."""
    accumulator = StreamAccumulator(on_update=on_update)
    for fragment in fragments:
        accumulator.append(fragment)
    return accumulator.finish()

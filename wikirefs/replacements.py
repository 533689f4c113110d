# Applying text replacements planned over the original page text
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

from dataclasses import dataclass


@dataclass(frozen=True)
class Replacement:
    """Replace ``text[start:end]`` of the original text by ``text``.  An
    insertion has ``start == end``."""

    start: int
    end: int
    text: str


def collapse_replacements(replacements: list[Replacement]) -> list[Replacement]:
    """Removes replacements for the same span, keeping the one planned
    last, and sorts the rest by start offset.  Insertions at the same
    offset keep their planned order."""
    by_span: dict[tuple[int, int], Replacement] = {}
    for r in replacements:
        assert isinstance(r, Replacement)
        assert 0 <= r.start <= r.end
        key = (r.start, r.end)
        # Re-inserting moves the key to the end, as if planned last
        by_span.pop(key, None)
        by_span[key] = r
    return sorted(by_span.values(), key=lambda r: (r.start, r.end))


def apply_replacements(source: str, replacements: list[Replacement]) -> str:
    """Applies replacements given in the coordinates of ``source``, left
    to right, keeping track of how much earlier replacements have changed
    the length of the text.  Spans past the end of ``source`` are clamped
    to it, so that appending is expressed as a replacement at
    ``len(source)``."""
    assert isinstance(source, str)
    text = source
    delta = 0
    for r in collapse_replacements(replacements):
        start = min(r.start, len(source)) + delta
        end = min(r.end, len(source)) + delta
        text = text[:start] + r.text + text[end:]
        delta += len(r.text) - (end - start)
    return text

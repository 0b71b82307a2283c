"""Character-offset spans and the claimed-region bookkeeping built on them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterator


@dataclass(frozen=True, order=True)
class Span:
    """Half-open range [start, end) into a document's text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Span start {self.start} is past its end {self.end}")

    @classmethod
    def from_match(cls, match: re.Match[str]) -> Span:
        return cls(match.start(), match.end())

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: Span) -> bool:
        # Touching spans count as contained
        return self.end >= other.start and self.start <= other.end

    def overlaps(self, other: Span) -> bool:
        return self.start < other.end and self.end > other.start

    def slice(self, text: str) -> str:
        return text[self.start : self.end]


class SpanSet:
    """
    Normalized set of spans.

    After every mutation the spans are sorted by start and any touching or
    overlapping spans are merged into one.
    """

    def __init__(self, spans: list[Span] | None = None):
        self._spans: list[Span] = []
        for span in spans or []:
            self.merge(span)

    def __iter__(self) -> Iterator[Span]:
        return iter(self._spans)

    def __len__(self) -> int:
        return len(self._spans)

    def __repr__(self) -> str:
        inner = ", ".join(f"[{s.start}, {s.end})" for s in self._spans)
        return f"SpanSet({inner})"

    @property
    def start(self) -> int | None:
        return self._spans[0].start if self._spans else None

    @property
    def end(self) -> int | None:
        return self._spans[-1].end if self._spans else None

    def contains(self, other: Span | SpanSet) -> bool:
        if isinstance(other, Span):
            return any(span.contains(other) for span in self._spans)
        return self._sweep(other, lambda a, b: a.contains(b))

    def overlaps(self, other: Span | SpanSet) -> bool:
        if isinstance(other, Span):
            return any(span.overlaps(other) for span in self._spans)
        return self._sweep(other, lambda a, b: a.overlaps(b))

    def merge(self, span: Span) -> None:
        self._spans.append(span)
        self._normalize()

    def clear(self) -> None:
        self._spans = []

    def _normalize(self) -> None:
        self._spans.sort()
        result: list[Span] = []

        for span in self._spans:
            if result and result[-1].end >= span.start:
                last = result[-1]
                result[-1] = Span(last.start, max(last.end, span.end))
            else:
                result.append(span)

        self._spans = result

    def _sweep(self, other: SpanSet, predicate: Callable[[Span, Span], bool]) -> bool:
        left_idx = 0
        right_idx = 0

        while left_idx < len(self._spans) and right_idx < len(other._spans):
            left = self._spans[left_idx]
            right = other._spans[right_idx]

            if predicate(left, right):
                return True

            # Advance whichever ends first
            if left.end < right.end:
                left_idx += 1
            else:
                right_idx += 1

        return False

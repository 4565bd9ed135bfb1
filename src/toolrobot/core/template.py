"""Find call expressions embedded in response text and fill their results back in.

Expressions are wrapped in braces, e.g. `The answer is {add(2, 3)}`. The opening brace may be prefixed with a
reserved marker, a zero-width space (`\\u200b`) or `$`, which is consumed along with the placeholder.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel

from ..utilities.parse import find_closing

logger = logging.getLogger(__name__)

MARKERS = ("\u200b", "$")
OPEN = "{"
CLOSE = "}"


class Placeholder(BaseModel):
    start: int
    end: int
    expression: str


class ResponseTemplate:
    """Response text split into literal text and placeholders.

    Examples
    --------
    >>> template = ResponseTemplate("The answer is {add(2, 3)}")
    >>> template.expressions
    ['add(2, 3)']
    >>> template.fill(["5"])
    'The answer is 5'
    """

    def __init__(self, text: str):
        self.text = text
        self.placeholders = self._scan(text)

    @staticmethod
    def _scan(text: str) -> list[Placeholder]:
        placeholders = []
        i = text.find(OPEN)
        while i != -1:
            closing = find_closing(text, i, OPEN, CLOSE)
            if closing == -1:
                logger.debug(f"Unbalanced '{OPEN}' at index {i}; treating it as text")
                i = text.find(OPEN, i + 1)
                continue

            start = i - 1 if i > 0 and text[i - 1] in MARKERS else i
            placeholders.append(Placeholder(start=start, end=closing + 1, expression=text[i + 1 : closing].strip()))
            i = text.find(OPEN, closing + 1)
        return placeholders

    @property
    def expressions(self) -> list[str]:
        return [p.expression for p in self.placeholders]

    def fill(self, values: Sequence[str | None]) -> str:
        """Replace each placeholder with its value; a `None` value leaves the placeholder as written."""
        if len(values) != len(self.placeholders):
            raise ValueError(f"Expected {len(self.placeholders)} values, received {len(values)}")

        parts = []
        cursor = 0
        for placeholder, value in zip(self.placeholders, values):
            parts.append(self.text[cursor : placeholder.start])
            parts.append(self.text[placeholder.start : placeholder.end] if value is None else value)
            cursor = placeholder.end
        parts.append(self.text[cursor:])
        return "".join(parts)

"""Track the calls made during one orchestration attempt."""

from __future__ import annotations

import logging
from typing import Iterator

logger = logging.getLogger(__name__)


class CallHistory:
    """Ordered mapping of canonical call key to stringified result.

    A canonical key is the function name followed by its fully-coerced arguments, e.g. `add(2, 3)`.
    Keys are unique; recording an existing key overwrites its result and moves it to the end.

    Examples
    --------
    >>> history = CallHistory()
    >>> history.record("add(2, 3)", "5")
    >>> "add(2, 3)" in history
    True
    >>> history.last()
    ('add(2, 3)', '5')
    """

    def __init__(self, records: dict[str, str] | None = None):
        self._records: dict[str, str] = dict(records or {})

    def record(self, key: str, result: str) -> None:
        self._records.pop(key, None)
        self._records[key] = result

    def get(self, key: str) -> str | None:
        return self._records.get(key)

    def last(self) -> tuple[str, str] | None:
        """Return the most recently recorded (key, result) pair."""
        if not self._records:
            return None
        key = next(reversed(self._records))
        return key, self._records[key]

    def items(self) -> list[tuple[str, str]]:
        return list(self._records.items())

    def clear(self) -> None:
        self._records.clear()

    def summary(self) -> str:
        """Describe every recorded call and its result, for use in corrective messages."""
        return " ".join(f"{key} has result {result}." for key, result in self._records.items())

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"CallHistory({self._records!r})"

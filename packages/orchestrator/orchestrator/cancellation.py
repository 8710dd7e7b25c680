from __future__ import annotations

from typing import Set


class CancellationRegistry:
    """Session ids marked for cancellation; an id stays until cleared."""

    def __init__(self) -> None:
        self._cancelled: Set[str] = set()

    def cancel(self, session_id: str) -> None:
        self._cancelled.add(session_id)

    def is_cancelled(self, session_id: str) -> bool:
        return session_id in self._cancelled

    def clear(self, session_id: str) -> None:
        self._cancelled.discard(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._cancelled

    def __len__(self) -> int:
        return len(self._cancelled)

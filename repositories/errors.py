"""Persistence errors shared by all stores."""

from __future__ import annotations


class StoreError(RuntimeError):
    """Raised when a read or write against the backing store fails."""

    def __init__(self, action: str, detail: object) -> None:
        super().__init__(f"Failed to {action}: {detail}")
        self.action = action
        self.detail = detail

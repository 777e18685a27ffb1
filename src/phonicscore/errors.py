"""Exception types raised by the catalog, progress store, and service."""

from __future__ import annotations


class NotFoundError(KeyError):
    """Catalog lookup for a stage id outside the defined range."""

    def __init__(self, stage_id: object) -> None:
        super().__init__(stage_id)
        self.stage_id = stage_id

    def __str__(self) -> str:
        return f"Unknown stage id: {self.stage_id!r}"


class PersistenceError(RuntimeError):
    """Durable store read or write failure."""


class StageLockedError(RuntimeError):
    """Attempt to enter a stage the player has not unlocked yet."""

    def __init__(self, stage_id: int) -> None:
        super().__init__(f"Stage {stage_id} is locked.")
        self.stage_id = stage_id

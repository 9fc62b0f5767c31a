"""Delete result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class FailedItem:
    """An entry the worker could not delete."""

    path: str
    error: str = ""
    id: str | None = None

    @property
    def key(self) -> str:
        return self.id if self.id is not None else self.path


@dataclass(slots=True)
class DeleteResult:
    """Outcome of a delete call. Partial failure is not an error."""

    deleted_count: int = 0
    deleted_size: int = 0
    failed_count: int = 0
    failed_items: list[FailedItem] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.failed_count > 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeleteResult:
        failed = [
            FailedItem(
                path=str(item.get("path", "")),
                error=str(item.get("error", "")),
                id=item.get("id"),
            )
            for item in payload.get("failed_items") or []
        ]
        return cls(
            deleted_count=int(payload.get("deleted_count", 0)),
            deleted_size=int(payload.get("deleted_size", 0)),
            failed_count=int(payload.get("failed_count", len(failed))),
            failed_items=failed,
        )

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SyncResult:
    success: bool
    detail: str


class SyncClient(Protocol):
    def attempt_sync(self, pr_id: str) -> SyncResult: ...

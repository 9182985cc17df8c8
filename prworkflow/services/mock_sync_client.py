from __future__ import annotations

import hashlib

from prworkflow.services.sync_client import SyncResult


class MockSyncClient:
    """Stands in for SAP with a stable outcome per purchase request.

    Each request id hashes into a 0-99 bucket; ids whose bucket falls under
    ``success_rate`` are accepted, the rest are rejected.
    """

    def __init__(self, success_rate: int = 100, seed: str = 'prworkflow') -> None:
        if not 0 <= success_rate <= 100:
            raise ValueError('success_rate must be between 0 and 100')
        self.success_rate = success_rate
        self.seed = seed

    def _bucket(self, pr_id: str) -> int:
        digest = hashlib.sha256(f'{self.seed}:{pr_id}'.encode('utf-8')).hexdigest()
        return int(digest[:8], 16) % 100

    def attempt_sync(self, pr_id: str) -> SyncResult:
        if self._bucket(pr_id) < self.success_rate:
            return SyncResult(success=True, detail=f'Mock SAP accepted purchase request {pr_id}')
        return SyncResult(success=False, detail=f'Mock SAP rejected purchase request {pr_id}')

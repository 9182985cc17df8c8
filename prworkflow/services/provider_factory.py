from __future__ import annotations

from functools import lru_cache

from prworkflow.config import settings
from prworkflow.services.mock_sync_client import MockSyncClient
from prworkflow.services.sap_sync_client import SapHttpSyncClient
from prworkflow.services.sync_client import SyncClient


@lru_cache(maxsize=1)
def get_sync_client() -> SyncClient:
    provider = settings.sap_sync_client.strip().lower()
    if provider == 'http':
        return SapHttpSyncClient()
    return MockSyncClient(success_rate=settings.mock_sync_success_rate)

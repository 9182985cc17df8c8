from __future__ import annotations

import json
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from prworkflow.config import settings
from prworkflow.errors import SyncFailure
from prworkflow.services.sync_client import SyncResult


class SapHttpSyncClient:
    def __init__(self, base_url: str | None = None, token: str | None = None, timeout_seconds: int | None = None) -> None:
        token = token if token is not None else settings.sap_api_token
        if not token:
            raise ValueError('SAP_API_TOKEN is required when SAP_SYNC_CLIENT=http')

        self.base_url = (base_url or settings.sap_api_base_url).rstrip('/')
        self.timeout_seconds = timeout_seconds or settings.sap_timeout_seconds
        self.headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
        }

    def _post(self, path: str, payload: dict) -> dict:
        req = Request(
            url=f'{self.base_url}{path}',
            data=json.dumps(payload).encode('utf-8'),
            headers=self.headers,
            method='POST',
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                body = response.read().decode('utf-8')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise SyncFailure(f'SAP API error {exc.code} on {path}: {body}') from exc
        except URLError as exc:
            raise SyncFailure(f'SAP API network error on {path}: {exc.reason}') from exc

        if not body.strip():
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise SyncFailure(f'SAP API returned invalid JSON on {path}') from exc

    def attempt_sync(self, pr_id: str) -> SyncResult:
        parsed = self._post(f'/purchase-requests/{quote(pr_id, safe="")}/sync', {'pr_id': pr_id})
        if parsed.get('errors'):
            return SyncResult(success=False, detail=f"SAP API returned errors: {parsed['errors']}")
        if not parsed:
            return SyncResult(success=False, detail='SAP API returned an empty response')
        # Only a JSON boolean true counts as acceptance.
        accepted = parsed.get('success') is True
        detail = str(parsed.get('message') or ('Accepted by SAP' if accepted else 'Rejected by SAP'))
        return SyncResult(success=accepted, detail=detail)

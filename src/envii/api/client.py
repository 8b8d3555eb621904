"""
HTTP client for the Envii vault store.

The store is an opaque blob service. Every request is authenticated with
the vault identifier as a bearer token; the store never receives the
recovery phrase or the encryption key.

Endpoints:
    POST /backup          Upload a new envelope, becomes the latest backup
    GET  /backup/latest   Download the latest envelope (404 when empty)
    GET  /backups         List backup metadata, paginated

Requests are not retried. A failed round trip raises NetworkError and is
terminal for the command that made it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from envii.errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_LIST_LIMIT = 100


@dataclass
class BackupRecord:
    """Metadata of a stored backup."""

    id: str
    created_at: str
    size_bytes: int = 0
    device_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupRecord:
        return cls(
            id=str(data.get("id", "")),
            created_at=str(data.get("createdAt", "")),
            size_bytes=int(data.get("sizeBytes") or 0),
            device_id=data.get("deviceId"),
        )


@dataclass
class LatestBackup:
    """The latest backup envelope of a vault."""

    id: str
    blob: str
    created_at: str
    device_id: str | None = None


@dataclass
class BackupPage:
    """One page of backup metadata."""

    items: list[BackupRecord] = field(default_factory=list)
    total: int = 0


class VaultClient:
    """
    Client for one vault on the remote store.

    Attributes:
        base_url: Store URL without trailing slash.
        timeout: Per-request timeout in seconds.

    Example:
        client = VaultClient("http://localhost:4400", vault_identifier(phrase))
        record = client.create_backup(envelope, device_id="laptop-1a2b3c4d")
        latest = client.get_latest_backup()
    """

    def __init__(
        self,
        base_url: str,
        vault_id: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Store URL, e.g. "http://localhost:4400".
            vault_id: Vault identifier derived from the recovery phrase.
            timeout: Per-request timeout in seconds.
            session: Optional preconfigured session (used in tests).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {vault_id}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        """
        Make an API request.

        Returns:
            Decoded JSON body, or None for a 404 when allow_not_found is set.

        Raises:
            NetworkError: On connection failure, timeout, non-success status
                          or an undecodable body.
        """
        url = f"{self.base_url}{endpoint}"
        start_time = time.time()

        try:
            response = self._session.request(
                method, url, params=params, json=json_data, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Request to {url} timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Failed to connect to {url}: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(f"API call: {method} {endpoint} -> {response.status_code} ({duration_ms:.0f}ms)")

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code == 401:
            raise NetworkError(
                "The server rejected the vault credential (401 Unauthorized).",
                status_code=401,
            )

        if response.status_code == 413:
            raise NetworkError("Backup is too large for the server (413).", status_code=413)

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Server returned {response.status_code} for {method} {endpoint}: "
                f"{_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(
                f"Server returned invalid JSON for {method} {endpoint}",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise NetworkError(
                f"Unexpected response body for {method} {endpoint}",
                status_code=response.status_code,
            )
        return data

    def create_backup(self, blob: str, device_id: str | None = None) -> BackupRecord:
        """
        Upload an envelope as the vault's new latest backup.

        Args:
            blob: Base64 envelope.
            device_id: Originating device identifier.

        Returns:
            BackupRecord with the server-assigned id and size.
        """
        body: dict[str, Any] = {"blob": blob}
        if device_id:
            body["deviceId"] = device_id

        data = self._request("POST", "/backup", json_data=body)
        assert data is not None
        record = BackupRecord.from_dict(data)
        if record.device_id is None:
            record.device_id = device_id
        return record

    def get_latest_backup(self) -> LatestBackup | None:
        """
        Download the latest backup.

        Returns:
            LatestBackup, or None when the vault has no backups.
        """
        data = self._request("GET", "/backup/latest", allow_not_found=True)
        if data is None:
            return None

        blob = data.get("blob")
        if not isinstance(blob, str) or not blob:
            raise NetworkError("Server response is missing the backup blob")

        return LatestBackup(
            id=str(data.get("id", "")),
            blob=blob,
            created_at=str(data.get("createdAt", "")),
            device_id=data.get("deviceId"),
        )

    def list_backups(self, limit: int = 10, offset: int = 0) -> BackupPage:
        """
        List backup metadata, newest first.

        Args:
            limit: Page size (capped at 100).
            offset: Number of backups to skip.
        """
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        offset = max(0, offset)

        data = self._request("GET", "/backups", params={"limit": limit, "offset": offset})
        assert data is not None

        items = [BackupRecord.from_dict(item) for item in data.get("backups", [])]
        return BackupPage(items=items, total=int(data.get("total", len(items))))

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()


def _error_message(response: requests.Response) -> str:
    """Extract a readable error message from an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason or "unknown error"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)

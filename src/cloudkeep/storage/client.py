"""HTTP client for the remote blob store with streamed transfers and progress.

Store surface (all requests carry a bearer credential):

    GET    {base}/{namespace}/?list=1   -> {"items": [...]}
    GET    {base}/{namespace}/{name}    -> body, optional Content-Length
    PUT    {base}/{namespace}/{name}    <- fully buffered body
    DELETE {base}/{namespace}/{name}

Progress callbacks receive integer percentages. While a transfer is in
flight the value is capped at 99; exactly 100 is reported once the
transfer has completed successfully.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator
from urllib.parse import quote

import httpx

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

_DEFAULT_CHUNK_SIZE = 65536


class StorageError(Exception):
    """Base error for blob store operations."""


class StorageAuthError(StorageError):
    """No bearer credential is configured."""


class NetworkError(StorageError):
    """Transport failure or non-success HTTP status."""


@dataclass(frozen=True)
class RemoteItem:
    """One object in the store listing."""

    key: str
    size: int
    content_type: str
    etag: str
    last_modified: int  # epoch milliseconds

    @classmethod
    def from_payload(cls, data: dict) -> RemoteItem:
        return cls(
            key=str(data.get("key", "")),
            size=_as_int(data.get("size")),
            content_type=str(data.get("contentType") or ""),
            etag=str(data.get("etag") or ""),
            last_modified=_as_int(data.get("lastModified")),
        )


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def in_flight_percent(done: int, total: int) -> int:
    """Percentage for a transfer that has not finished yet (0..99)."""
    return min(99, done * 100 // total)


def _get_token() -> str | None:
    """Retrieve the storage token from the system keyring."""
    try:
        import keyring

        return keyring.get_password("cloudkeep", "storage_token")
    except Exception:
        return None


class StorageClient:
    """Authenticated list/get/put/delete against one namespace of the store."""

    def __init__(
        self,
        config: dict | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        config = config or {}
        self._base_url = str(config.get("base_url", "")).rstrip("/")
        self._namespace = str(config.get("namespace", "")).strip("/")
        token = config.get("token")
        if token == "keyring" or not token:
            token = _get_token()
        self._token = token
        self._chunk_size = int(config.get("chunk_size") or _DEFAULT_CHUNK_SIZE)
        self._streaming = bool(config.get("streaming", True))
        self._http = httpx.Client(
            timeout=config.get("timeout"),
            transport=transport,
        )

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> StorageClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _url(self, name: str | None = None) -> str:
        root = f"{self._base_url}/{self._namespace}" if self._namespace else self._base_url
        if name is None:
            return f"{root}/?list=1"
        return f"{root}/{quote(name, safe='')}"

    def _headers(self) -> dict[str, str]:
        if not self._token:
            raise StorageAuthError(
                "No storage token configured.\n"
                "Set storage.token in config.yaml or store it: python -c "
                "\"import keyring; keyring.set_password('cloudkeep', 'storage_token', 'YOUR_TOKEN')\""
            )
        token = self._token
        if not token.startswith("Bearer "):
            token = f"Bearer {token}"
        return {"Authorization": token}

    def list(self) -> list[RemoteItem]:
        """List every object in the namespace. An empty store yields []."""
        headers = self._headers()
        try:
            resp = self._http.get(self._url(), headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"List failed ({e.response.status_code}): {e}") from e
        except (httpx.TransportError, OSError) as e:
            raise NetworkError(f"Store unreachable: {e}") from e
        except (ValueError, RecursionError) as e:
            raise NetworkError(f"List returned invalid JSON: {e}") from e

        raw_items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(raw_items, list):
            if raw_items is not None:
                log.warning("Ignoring listing with non-list items: %s", type(raw_items).__name__)
            return []
        return [RemoteItem.from_payload(item) for item in raw_items if isinstance(item, dict)]

    def get(self, name: str, on_progress: ProgressCallback | None = None) -> bytes:
        """Download an object, reporting progress while the body streams in."""
        headers = self._headers()
        url = self._url(name)
        try:
            if not self._streaming:
                resp = self._http.get(url, headers=headers)
                resp.raise_for_status()
                body = resp.content
            else:
                body = self._get_streamed(url, headers, on_progress)
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Download of {name!r} failed ({e.response.status_code}): {e}") from e
        except (httpx.TransportError, httpx.StreamError, OSError) as e:
            raise NetworkError(f"Download of {name!r} failed: {e}") from e

        log.info("Downloaded %s (%d bytes)", name, len(body))
        if on_progress:
            on_progress(100)
        return body

    def _get_streamed(
        self,
        url: str,
        headers: dict[str, str],
        on_progress: ProgressCallback | None,
    ) -> bytes:
        chunks: list[bytes] = []
        loaded = 0
        with self._http.stream("GET", url, headers=headers) as resp:
            resp.raise_for_status()
            total = _as_int(resp.headers.get("content-length"))
            for chunk in resp.iter_bytes(self._chunk_size):
                if not chunk:
                    continue
                chunks.append(chunk)
                loaded += len(chunk)
                if total > 0 and on_progress:
                    on_progress(in_flight_percent(loaded, total))
        return b"".join(chunks)

    def put(
        self,
        name: str,
        content: str | bytes,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Upload an object. Any failure fails the whole upload; nothing is resumed."""
        headers = self._headers()
        body = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        headers["Content-Length"] = str(len(body))

        try:
            resp = self._http.put(
                self._url(name),
                headers=headers,
                content=self._upload_chunks(body, on_progress),
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Upload of {name!r} failed ({e.response.status_code}): {e}") from e
        except (httpx.TransportError, httpx.StreamError, OSError) as e:
            raise NetworkError(f"Upload of {name!r} failed: {e}") from e

        log.info("Uploaded %s (%d bytes)", name, len(body))
        if on_progress:
            on_progress(100)

    def _upload_chunks(
        self, body: bytes, on_progress: ProgressCallback | None,
    ) -> Iterator[bytes]:
        total = len(body)
        sent = 0
        for start in range(0, total, self._chunk_size):
            chunk = body[start:start + self._chunk_size]
            yield chunk
            sent += len(chunk)
            if on_progress:
                on_progress(in_flight_percent(sent, total))

    def delete(self, name: str) -> None:
        """Remove an object. The response status is not inspected."""
        headers = self._headers()
        try:
            resp = self._http.delete(self._url(name), headers=headers)
        except (httpx.TransportError, OSError) as e:
            raise NetworkError(f"Delete of {name!r} failed: {e}") from e
        log.info("Deleted %s (status %d)", name, resp.status_code)

"""Export client implementation.

This module provides the ExportClient class, which asks the server for a
site export and streams the response into a local file:

 - export_url (builds <url>/api/v1/admin/export?mode=file&site=<site>)
 - fetch (basic-auth GET, one deadline for the whole run, streamed copy)
 - export (export_url + fetch for a site)

The body is copied into a temporary ``.site-backup.*.partial`` file next to the
destination and renamed into place only after the full body is on disk.
A failed or timed-out export never leaves a file at the destination.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import os
import tempfile
import time
from typing import Any, Optional, Tuple, Union

import aiohttp
from yarl import URL

from .exceptions import (
    ExportTimeoutError,
    LocalIOError,
    RemoteRejectionError,
    RequestConstructionError,
    TransportError,
)
from .types import ADMIN_USER, DEFAULT_TIMEOUT, EXPORT_ENDPOINT, ExportRequest, ExportResult

CHUNK_SIZE = 8192
PARTIAL_PREFIX = ".site-backup."
MAX_ERROR_BODY = 64 * 1024  # bytes kept from a rejected response
ERROR_SUMMARY_LEN = 200  # chars of the rejected body put in the message

log = logging.getLogger(__name__)


def _display_url(url: Union[str, URL]) -> str:
    """URL as it may appear in logs and errors, without any userinfo."""
    if isinstance(url, str):
        url = URL(url)
    return str(url.with_user(None)) if url.user or url.password else str(url)


def basic_auth_header(user: str, password: str) -> str:
    """Authorization header value for HTTP basic auth."""
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _close_quietly(fh: Any, path: str) -> None:
    try:
        fh.close()
    except OSError as e:
        log.warning(f"failed to close file {path}, {e}")


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f"failed to remove incomplete file {path}, {e}")


class ExportClient:
    """Client for the server's admin export endpoint.

    A single aiohttp session is created lazily and shared by all calls
    made through this instance. Use it as an async context manager, or
    call close() when done.

    Example:
        async with ExportClient("https://remark.example.com", timeout=60) as client:
            result = await client.export("remark", password, "./var/backup/remark.gz")
            print(result.path, result.size)
    """

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_TIMEOUT,
                 ssl: Optional[Any] = None, chunk_size: int = CHUNK_SIZE):
        """Initialize the export client.

        Args:
            base_url: Base URL of the server, e.g. https://remark.example.com
            timeout: Deadline in seconds for one whole export (default: 15 minutes)
            ssl: Passed to aiohttp.TCPConnector; False disables verification,
                an SSLContext pins certificates, None uses system defaults
            chunk_size: Bytes read from the response per write
        """
        self.base_url = (base_url or "").rstrip('/')
        self.timeout = timeout
        self.ssl = ssl
        self.chunk_size = chunk_size

        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ExportClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self.ssl) if self.ssl is not None else None
            # the deadline is enforced by fetch() around the whole run,
            # aiohttp's own 5 minute default would cut long exports short
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=None),
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # -------------------------
    # Request construction
    # -------------------------
    def export_url(self, site: str) -> URL:
        """Build the export URL for a site.

        Raises:
            RequestConstructionError: If the base URL isn't an absolute http(s) URL
        """
        if not self.base_url:
            raise RequestConstructionError("can't make export request, server url is empty")
        try:
            base = URL(self.base_url)
        except (TypeError, ValueError) as e:
            raise RequestConstructionError(f"can't make export request for {self.base_url!r}: {e}") from e

        if not base.is_absolute() or base.scheme not in ("http", "https") or not base.host:
            raise RequestConstructionError(
                f"can't make export request for {_display_url(base)}, an absolute http(s) url is required"
            )
        if base.user or base.password:
            log.warning(f"credentials in server url {_display_url(base)} ignored, the admin password is used")
            base = base.with_user(None)
        path = base.path.rstrip('/') + EXPORT_ENDPOINT
        return base.with_path(path).with_query({"mode": "file", "site": site})

    # -------------------------
    # Export
    # -------------------------
    async def export(self, site: str, credential: str, destination: str,
                     timeout: Optional[float] = None) -> ExportResult:
        """Export a site into ``destination``. See fetch() for the details."""
        return await self.fetch(self.export_url(site), credential, destination, timeout=timeout)

    async def fetch(self, url: Union[str, URL], credential: str, destination: str,
                    timeout: Optional[float] = None) -> ExportResult:
        """Download an export and write it to ``destination``.

        The deadline covers connecting, the request/response roundtrip and
        the whole body copy. No retries are made.

        Args:
            url: Full export URL (see export_url)
            credential: Admin basic-auth password
            destination: File to create or replace
            timeout: Deadline in seconds, defaults to the client timeout

        Returns:
            ExportResult with the destination path and bytes written

        Raises:
            ExportTimeoutError: If the deadline elapses
            TransportError: If the connection fails
            RemoteRejectionError: If the server answers with status >= 300
            LocalIOError: If the destination can't be written
        """
        if isinstance(url, str):
            url = URL(url)
        timeout = self.timeout if timeout is None else timeout
        shown = _display_url(url)

        await self._ensure_session()
        started = time.monotonic()
        try:
            size = await asyncio.wait_for(self._download(url, shown, credential, destination), timeout)
        except asyncio.TimeoutError as e:
            log.error(f"export from {shown} timed out after {timeout}s")
            raise ExportTimeoutError(
                f"export from {shown} timed out after {timeout}s, file {destination} not written",
                url=shown,
                timeout=timeout,
            ) from e

        elapsed = time.monotonic() - started
        log.info(f"Exported data saved to {destination}, {size} bytes in {elapsed:.2f}s")
        return ExportResult(path=destination, size=size, url=shown, elapsed=elapsed)

    async def _download(self, url: URL, shown: str, credential: str, destination: str) -> int:
        headers = {"Authorization": basic_auth_header(ADMIN_USER, credential)}
        log.debug(f"export request sent to {shown}")
        try:
            async with self._session.get(url, headers=headers) as resp:
                log.debug(f"export response received - status: {resp.status}, "
                          f"content-type: {resp.content_type}, content-length: {resp.content_length}")
                if resp.status >= 300:
                    raise await self._rejection(resp, shown)
                return await self._stream_to_file(resp, destination)
        except asyncio.TimeoutError:
            raise
        except aiohttp.InvalidURL as e:
            raise RequestConstructionError(f"can't make export request for {shown}: {e}") from e
        except aiohttp.ClientError as e:
            log.error(f"request failed for {shown}: {e}")
            raise TransportError(f"request failed for {shown}: {e}", url=shown) from e
        except ValueError as e:
            raise RequestConstructionError(f"can't make export request for {shown}: {e}") from e

    async def _rejection(self, resp: aiohttp.ClientResponse, shown: str) -> RemoteRejectionError:
        raw = bytearray()
        async for chunk in resp.content.iter_chunked(self.chunk_size):
            raw.extend(chunk)
            if len(raw) >= MAX_ERROR_BODY:
                log.debug(f"rejected response body longer than {MAX_ERROR_BODY} bytes, truncated")
                break
        try:
            body = bytes(raw[:MAX_ERROR_BODY]).decode(resp.charset or "utf-8", errors="replace")
        except LookupError:
            body = bytes(raw[:MAX_ERROR_BODY]).decode("utf-8", errors="replace")

        summary = body.strip()
        if len(summary) > ERROR_SUMMARY_LEN:
            summary = summary[:ERROR_SUMMARY_LEN] + "..."
        log.error(f"export request to {shown} rejected, status {resp.status}")
        return RemoteRejectionError(
            f"export request to {shown} rejected, status {resp.status}: {summary or resp.reason}",
            status=resp.status,
            body=body,
            url=shown,
        )

    def _open_partial(self, destination: str) -> Tuple[Any, str]:
        directory = os.path.dirname(destination)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=PARTIAL_PREFIX, suffix=".partial", dir=directory or ".")
        except OSError as e:
            raise LocalIOError(f"can't create backup file {destination}: {e}", path=destination) from e
        try:
            return os.fdopen(fd, "wb"), tmp_path
        except OSError as e:
            os.close(fd)
            _remove_quietly(tmp_path)
            raise LocalIOError(f"can't create backup file {destination}: {e}", path=destination) from e

    async def _stream_to_file(self, resp: aiohttp.ClientResponse, destination: str) -> int:
        fh, tmp_path = self._open_partial(destination)
        log.debug(f"streaming export into {tmp_path}")
        size = 0
        completed = False
        try:
            async for chunk in resp.content.iter_chunked(self.chunk_size):
                try:
                    fh.write(chunk)
                except OSError as e:
                    raise LocalIOError(f"failed to write backup file {destination}: {e}", path=destination) from e
                size += len(chunk)
            try:
                fh.flush()
                # off the loop so the deadline can still interrupt a slow disk
                await asyncio.get_running_loop().run_in_executor(None, os.fsync, fh.fileno())
            except OSError as e:
                raise LocalIOError(f"failed to write backup file {destination}: {e}", path=destination) from e
            completed = True
        finally:
            _close_quietly(fh, tmp_path)
            if not completed:
                log.debug(f"export incomplete after {size} bytes, removing {tmp_path}")
                _remove_quietly(tmp_path)

        try:
            os.replace(tmp_path, destination)
        except OSError as e:
            _remove_quietly(tmp_path)
            raise LocalIOError(f"can't move backup file into {destination}: {e}", path=destination) from e
        log.debug(f"export streaming completed, {size} bytes")
        return size


async def fetch(request: ExportRequest, destination: str, *, ssl: Optional[Any] = None) -> ExportResult:
    """Run one export described by ``request`` with a short-lived client."""
    async with ExportClient(request.base_url, timeout=request.timeout, ssl=ssl) as client:
        return await client.export(request.site, request.credential, destination)

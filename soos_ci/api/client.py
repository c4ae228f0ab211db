"""Async client for the SOOS analysis API."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import structlog

from soos_ci.api.schemas import (
    PackageManagerManifests,
    ScanHandle,
    ScanRequest,
    ScanStatusReport,
)
from soos_ci.config import DEFAULT_BASE_URI
from soos_ci.engines.manifest_discovery.models import ManifestFile

API_KEY_HEADER = "x-soos-apikey"

_DEFAULT_TIMEOUT = 60.0  # seconds


def encode_manifest_name(file_name: str) -> str:
    """Replace every ``.`` with ``*`` for use as a URL path segment.

    The API's web server treats dots in the last segment as a file extension;
    the server reverses the substitution.
    """
    return file_name.replace(".", "*")


def decode_manifest_name(encoded: str) -> str:
    return encoded.replace("*", ".")


class SOOSClient:
    """Thin async wrapper around the SOOS REST API.

    Each operation logs its request and response status.  Request and
    response bodies are logged at debug level (verbose mode).  Errors are
    logged and re-raised unchanged; nothing is retried.
    """

    def __init__(
        self,
        api_key: str,
        client_id: str,
        base_uri: str = DEFAULT_BASE_URI,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Any = None,
    ) -> None:
        self.client_id = client_id
        self._log = logger or structlog.get_logger("soos_ci.api")
        self._client = httpx.AsyncClient(
            base_url=base_uri,
            headers={API_KEY_HEADER: api_key},
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SOOSClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def create_scan(self, request: ScanRequest) -> ScanHandle:
        """Create the project/analysis structure for a new scan."""
        url = f"clients/{self.client_id}/analysis/structure"
        body = request.model_dump(mode="json", by_alias=True)
        response = await self._send("create_scan", "POST", url, json=body)
        return ScanHandle.model_validate(response.json())

    async def list_supported_manifests(self) -> list[PackageManagerManifests]:
        """Fetch the manifest filename patterns the service recognises, per package manager."""
        url = f"clients/{self.client_id}/manifests"
        response = await self._send("list_manifests", "GET", url)
        return [PackageManagerManifests.model_validate(item) for item in response.json()]

    async def upload_manifest(self, handle: ScanHandle, manifest: ManifestFile) -> None:
        """Stream one manifest file to the scan as multipart field ``manifest``."""
        url = (
            f"clients/{self.client_id}/projects/{handle.project_id}"
            f"/analysis/{handle.analysis_scan_id}"
            f"/manifests/{encode_manifest_name(manifest.name)}"
        )
        with Path(manifest.path).open("rb") as fh:
            await self._send(
                "upload_manifest",
                "PUT",
                url,
                files={"manifest": (manifest.name, fh)},
            )

    async def start_scan(self, handle: ScanHandle) -> None:
        """Move the scan to the started state once every manifest is uploaded."""
        url = (
            f"clients/{self.client_id}/projects/{handle.project_id}"
            f"/analysis/{handle.analysis_scan_id}"
        )
        await self._send("start_scan", "PUT", url)

    async def check_scan_status(self, report_status_url: str) -> ScanStatusReport:
        """GET the server-issued status URL.

        The URL is absolute and may point at another host than the base URI;
        httpx sends absolute URLs as-is.
        """
        response = await self._send("check_scan_status", "GET", report_status_url)
        return ScanStatusReport.model_validate(response.json())

    # ── internal ───────────────────────────────────────────────────────────

    async def _send(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        self._log.info("soos.request", operation=operation, method=method, url=url)
        if "json" in kwargs:
            self._log.debug("soos.request_body", operation=operation, body=kwargs["json"])
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self._log_error(operation, exc)
            raise

        self._log.info(
            "soos.response",
            operation=operation,
            status=response.status_code,
            reason=response.reason_phrase,
        )
        self._log.debug("soos.response_body", operation=operation, body=response.text)
        return response

    def _log_error(self, operation: str, exc: httpx.HTTPError) -> None:
        if isinstance(exc, httpx.HTTPStatusError):
            request, response = exc.request, exc.response
            self._log.debug(
                "soos.error_request",
                operation=operation,
                method=request.method,
                url=str(request.url),
            )
            self._log.error(
                "soos.error_response",
                operation=operation,
                status=response.status_code,
                reason=response.reason_phrase,
            )
            if response.text:
                self._log.debug("soos.error_response_body", operation=operation, body=response.text)
        self._log.error("soos.error", operation=operation, message=str(exc) or repr(exc))

"""Sequence one SOOS scan from creation to (optional) completion."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from soos_ci.api.client import SOOSClient
from soos_ci.api.schemas import ScanHandle, ScanRequest
from soos_ci.config import ScanParameters
from soos_ci.core.pipeline import PipelineReporter
from soos_ci.engines.manifest_discovery import ManifestFile, discover_manifests
from soos_ci.engines.scan_runner.models import ScanOutcome
from soos_ci.engines.scan_runner.poller import wait_for_scan
from soos_ci.exceptions import NoManifestFilesError

_log = structlog.get_logger("soos_ci.engine")


def create_scan_name(now: datetime | None = None) -> str:
    """ISO-8601 UTC instant with millisecond precision, e.g. ``2024-05-01T12:00:00.000Z``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_scan_request(parameters: ScanParameters, name: str) -> ScanRequest:
    return ScanRequest(
        name=name,
        project=parameters.project,
        commit_hash=parameters.commit_hash,
        branch=parameters.branch,
        build_version=parameters.build_version,
        build_uri=parameters.build_uri,
        branch_uri=parameters.branch_uri,
        integration_type=parameters.integration_type,
        operating_environment=parameters.operating_environment,
        integration_name=parameters.integration_name,
    )


class ScanRunner:
    """Orchestration layer over :class:`SOOSClient` and manifest discovery.

    1. Create the scan structure
    2. Fetch the supported manifest patterns
    3. Discover manifests under ``parameters.path``
    4. Upload them concurrently
    5. Start the scan
    6. Optionally poll until the scan finishes
    """

    def __init__(
        self,
        client: SOOSClient,
        *,
        reporter: PipelineReporter | None = None,
        logger: Any = None,
    ) -> None:
        self._client = client
        self._reporter = reporter or PipelineReporter()
        self._log = logger or _log

    async def run(self, parameters: ScanParameters) -> ScanOutcome:
        scan_name = create_scan_name()

        handle = await self._client.create_scan(build_scan_request(parameters, scan_name))
        self._log.info("scan.created", scan_name=scan_name)
        self._log.debug("scan.project", project_id=handle.project_id)

        specs = await self._client.list_supported_manifests()

        with self._reporter.group("Manifest Search"):
            manifests = discover_manifests(
                Path(parameters.path),
                specs,
                parameters.excluded_directories,
                logger=self._log,
            )

        if not manifests:
            raise NoManifestFilesError()

        outcome = ScanOutcome(scan_name=scan_name, handle=handle, manifests=manifests)

        await self._upload_all(handle, manifests)
        await self._client.start_scan(handle)
        self._log.info("scan.started", report_url=handle.report_url)
        self._reporter.echo(f"View the Security Analysis Scan results at: {handle.report_url}")

        if parameters.wait_for_scan:
            outcome.report = await wait_for_scan(
                self._client,
                handle.report_status_url,
                interval=parameters.poll_interval,
                max_attempts=parameters.max_poll_attempts,
                timeout=parameters.poll_timeout,
                logger=self._log,
            )
        return outcome

    async def _upload_all(self, handle: ScanHandle, manifests: list[ManifestFile]) -> None:
        """Upload every manifest at once; on the first failure cancel the rest.

        The first failure in discovery order is re-raised unchanged once the
        cancelled siblings have exited.
        """
        tasks = [
            asyncio.create_task(
                self._client.upload_manifest(handle, manifest),
                name=f"upload-{manifest.name}",
            )
            for manifest in manifests
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                self._log.error(
                    "scan.upload_failed",
                    task=task.get_name(),
                    cancelled=sum(1 for t in tasks if t.cancelled()),
                )
                raise exc
        self._log.info("scan.uploaded", count=len(tasks))

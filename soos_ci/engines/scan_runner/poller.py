"""Poll a scan's status URL until the analysis reaches a terminal state."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from soos_ci.api.schemas import ScanStatus, ScanStatusReport
from soos_ci.config import DEFAULT_POLL_INTERVAL
from soos_ci.exceptions import ScanFailedError, ScanStatusTimeoutError

_log = structlog.get_logger("soos_ci.engine")

_FAILED_STATUSES = (ScanStatus.FAILED_WITH_VIOLATIONS, ScanStatus.FAILED_WITH_VULNERABILITIES)


class StatusChecker(Protocol):
    async def check_scan_status(self, report_status_url: str) -> ScanStatusReport: ...


async def wait_for_scan(
    client: StatusChecker,
    report_status_url: str,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: int | None = None,
    timeout: float | None = None,
    logger: Any = None,
) -> ScanStatusReport:
    """Check the scan status every *interval* seconds until it finishes.

    Returns the final report on ``Finished``.  Raises :class:`ScanFailedError`
    on ``Error`` or a ``FailedWith*`` status.  Every other status, including
    ones this client does not know, means "keep waiting".

    With neither *max_attempts* nor *timeout* set this waits indefinitely;
    otherwise :class:`ScanStatusTimeoutError` is raised once a bound is hit.
    """
    log = logger or _log
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    attempt = 0

    while True:
        attempt += 1
        report = await client.check_scan_status(report_status_url)

        if report.status is ScanStatus.ERROR:
            raise ScanFailedError("Scan failed.", status=report.status.value)

        if report.status in _FAILED_STATUSES:
            raise ScanFailedError(
                f"Scan failed with {report.vulnerabilities} vulnerabilities"
                f" and {report.violations} violations.",
                status=report.status.value,
                vulnerabilities=report.vulnerabilities,
                violations=report.violations,
            )

        if report.status is ScanStatus.FINISHED:
            log.info(
                "scan.finished",
                vulnerabilities=report.vulnerabilities,
                violations=report.violations,
                attempts=attempt,
            )
            return report

        log.info("scan.status", status=report.status.value, attempt=attempt)

        if max_attempts is not None and attempt >= max_attempts:
            raise ScanStatusTimeoutError(
                f"Scan did not finish after {attempt} status checks"
                f" (last status: {report.status.value})."
            )
        if deadline is not None and loop.time() + interval > deadline:
            raise ScanStatusTimeoutError(
                f"Scan did not finish within {timeout:g} seconds"
                f" (last status: {report.status.value})."
            )

        await asyncio.sleep(interval)

"""Data models for the scan runner engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from soos_ci.api.schemas import ScanHandle, ScanStatusReport
from soos_ci.engines.manifest_discovery.models import ManifestFile


@dataclass
class ScanOutcome:
    """What a single run produced.  ``report`` is only set when the run waited."""

    scan_name: str
    handle: ScanHandle
    manifests: list[ManifestFile] = field(default_factory=list)
    report: ScanStatusReport | None = None

    @property
    def report_url(self) -> str:
        if self.report is not None and self.report.result and self.report.result.report_url:
            return self.report.result.report_url
        return self.handle.report_url

"""SOOS API request/response schemas."""

from __future__ import annotations

import enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ScanRequest(_ApiModel):
    """Body of ``POST clients/{clientId}/analysis/structure``."""

    name: str
    project: str
    commit_hash: str | None = None
    branch: str | None = None
    build_version: str | None = None
    build_uri: str | None = None
    branch_uri: str | None = None
    integration_type: str
    operating_environment: str
    integration_name: str


class ScanHandle(_ApiModel):
    """Identifiers returned by scan creation; every later call is addressed by them."""

    project_id: str
    analysis_scan_id: str = Field(validation_alias=AliasChoices("Id", "id", "analysisScanId"))
    report_url: str
    report_status_url: str


class ManifestPattern(_ApiModel):
    pattern: str
    is_lock_file: bool = False


class PackageManagerManifests(_ApiModel):
    package_manager: str
    manifests: list[ManifestPattern] = Field(default_factory=list)


class ScanStatus(str, enum.Enum):
    UNKNOWN = "Unknown"
    QUEUED = "Queued"
    MANIFEST = "Manifest"
    LOCATING_DEPENDENCIES = "LocatingDependencies"
    LOADING_PACKAGE_DETAILS = "LoadingPackageDetails"
    LOCATING_VULNERABILITIES = "LocatingVulnerabilities"
    RUNNING_GOVERNANCE_POLICIES = "RunningGovernancePolicies"
    FINISHED = "Finished"
    FAILED_WITH_VIOLATIONS = "FailedWithViolations"
    FAILED_WITH_VULNERABILITIES = "FailedWithVulnerabilities"
    ERROR = "Error"

    @classmethod
    def _missing_(cls, value: object) -> ScanStatus:
        # Statuses added server-side later are treated as "still running".
        return cls.UNKNOWN


class ScanResultSummary(_ApiModel):
    report_url: str | None = None
    vulnerabilities: int = 0
    violations: int = 0

    @field_validator("vulnerabilities", "violations", mode="before")
    @classmethod
    def _null_count_is_zero(cls, v: object) -> object:
        # Counts are sent as null until the scan reaches a terminal state.
        return 0 if v is None else v


class ScanStatusReport(_ApiModel):
    """Body of ``GET {reportStatusUrl}``; ``result`` is only set once the scan ends."""

    status: ScanStatus = ScanStatus.UNKNOWN
    analysis_id: str | None = None
    result: ScanResultSummary | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: object) -> object:
        if v is None:
            return ScanStatus.UNKNOWN
        return ScanStatus(v) if isinstance(v, str) else v

    @property
    def vulnerabilities(self) -> int:
        return self.result.vulnerabilities if self.result else 0

    @property
    def violations(self) -> int:
        return self.result.violations if self.result else 0

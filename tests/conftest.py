"""Shared pytest fixtures for soos_ci tests."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from soos_ci.api.schemas import ManifestPattern, PackageManagerManifests, ScanHandle
from soos_ci.config import ScanParameters
from soos_ci.core.pipeline import PipelineReporter


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def handle() -> ScanHandle:
    return ScanHandle(
        project_id="proj-1",
        analysis_scan_id="scan-1",
        report_url="https://app.soos.io/research/reports/1",
        report_status_url="https://status.soos.io/api/clients/c1/scans/1/status",
    )


@pytest.fixture
def npm_and_pip_specs() -> list[PackageManagerManifests]:
    return [
        PackageManagerManifests(
            package_manager="NPM",
            manifests=[
                ManifestPattern(pattern="package.json"),
                ManifestPattern(pattern="package-lock.json", is_lock_file=True),
            ],
        ),
        PackageManagerManifests(
            package_manager="PyPI",
            manifests=[ManifestPattern(pattern="requirements.txt")],
        ),
    ]


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    (root / "package.json").write_text('{"name": "demo"}')
    (root / "node_modules" / "x").mkdir(parents=True)
    (root / "node_modules" / "x" / "package.json").write_text("{}")
    return root


@pytest.fixture
def reporter() -> PipelineReporter:
    return PipelineReporter(stream=io.StringIO())


@pytest.fixture
def make_parameters():
    def _make(path: Path | str, **overrides) -> ScanParameters:
        values = {
            "client_id": "c1",
            "api_key": "k1",
            "project": "p1",
            "path": str(path),
            "operating_environment": "Linux",
        }
        values.update(overrides)
        return ScanParameters(**values)

    return _make

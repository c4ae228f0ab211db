"""Tests for the scan runner orchestration (client mocked, real filesystem)."""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from soos_ci.api.client import SOOSClient
from soos_ci.api.schemas import ScanResultSummary, ScanStatus, ScanStatusReport
from soos_ci.engines.manifest_discovery import ManifestFile
from soos_ci.engines.scan_runner import ScanRunner, create_scan_name
from soos_ci.engines.scan_runner.runner import build_scan_request
from soos_ci.exceptions import NoManifestFilesError, ScanFailedError


def _mock_client(handle, specs) -> MagicMock:
    client = MagicMock(spec=SOOSClient)
    client.create_scan = AsyncMock(return_value=handle)
    client.list_supported_manifests = AsyncMock(return_value=specs)
    client.upload_manifest = AsyncMock(return_value=None)
    client.start_scan = AsyncMock(return_value=None)
    client.check_scan_status = AsyncMock()
    return client


def _populate(root: Path) -> None:
    (root / "web").mkdir()
    (root / "web" / "package.json").write_text("{}")
    (root / "web" / "package-lock.json").write_text("{}")
    (root / "api").mkdir()
    (root / "api" / "requirements.txt").write_text("flask\n")


# ── helpers ──────────────────────────────────────────────────────────────


class TestScanName:
    def test_iso_instant_with_milliseconds(self):
        now = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
        assert create_scan_name(now) == "2024-05-01T12:30:45.123Z"

    def test_converted_to_utc(self):
        now = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert create_scan_name(now) == "2024-05-01T12:00:00.000Z"

    def test_default_is_now(self):
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", create_scan_name())

    def test_build_scan_request(self, make_parameters, tmp_path):
        params = make_parameters(tmp_path, branch="main", build_version="1.2.3")
        request = build_scan_request(params, "n")
        assert request.name == "n"
        assert request.project == "p1"
        assert request.branch == "main"
        assert request.build_version == "1.2.3"
        assert request.operating_environment == "Linux"
        assert request.integration_name == "Azure DevOps Pipeline"


# ── run ──────────────────────────────────────────────────────────────────


class TestScanRunner:
    @pytest.mark.anyio
    async def test_happy_path_without_waiting(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        _populate(tmp_path)
        client = _mock_client(handle, npm_and_pip_specs)
        runner = ScanRunner(client, reporter=reporter, logger=MagicMock())

        outcome = await runner.run(make_parameters(tmp_path))

        client.create_scan.assert_awaited_once()
        request = client.create_scan.await_args.args[0]
        assert request.project == "p1"
        assert request.name == outcome.scan_name
        assert [m.name for m in outcome.manifests] == [
            "package.json",
            "package-lock.json",
            "requirements.txt",
        ]
        assert client.upload_manifest.await_count == 3
        client.start_scan.assert_awaited_once_with(handle)
        client.check_scan_status.assert_not_awaited()
        assert outcome.report is None
        assert outcome.report_url == handle.report_url
        assert "##[group]Manifest Search" in reporter.stream.getvalue()
        assert reporter.stream.getvalue().endswith(
            f"View the Security Analysis Scan results at: {handle.report_url}\n"
        )

    @pytest.mark.anyio
    async def test_no_manifests_aborts_before_upload(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        (tmp_path / "README.md").write_text("nothing here")
        client = _mock_client(handle, npm_and_pip_specs)
        runner = ScanRunner(client, reporter=reporter, logger=MagicMock())

        with pytest.raises(NoManifestFilesError, match="No matching manifest files found."):
            await runner.run(make_parameters(tmp_path))

        client.upload_manifest.assert_not_awaited()
        client.start_scan.assert_not_awaited()

    @pytest.mark.anyio
    async def test_node_modules_manifest_not_uploaded(
        self, repo, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        client = _mock_client(handle, npm_and_pip_specs)
        runner = ScanRunner(client, reporter=reporter, logger=MagicMock())

        await runner.run(make_parameters(repo))

        client.upload_manifest.assert_awaited_once_with(
            handle, ManifestFile(name="package.json", path=(repo / "package.json").resolve())
        )

    @pytest.mark.anyio
    async def test_start_only_after_all_uploads(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        _populate(tmp_path)
        events: list[str] = []

        async def upload(_handle, manifest):
            events.append(f"begin:{manifest.name}")
            await asyncio.sleep(0)
            events.append(f"end:{manifest.name}")

        async def start(_handle):
            events.append("start")

        client = _mock_client(handle, npm_and_pip_specs)
        client.upload_manifest = AsyncMock(side_effect=upload)
        client.start_scan = AsyncMock(side_effect=start)

        await ScanRunner(client, reporter=reporter, logger=MagicMock()).run(
            make_parameters(tmp_path)
        )

        assert events[-1] == "start"
        assert sum(e.startswith("end:") for e in events) == 3
        # uploads run concurrently: every upload begins before any finishes
        assert [e.split(":")[0] for e in events[:3]] == ["begin"] * 3

    @pytest.mark.anyio
    async def test_upload_failure_cancels_siblings(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        _populate(tmp_path)
        cancelled: list[str] = []
        failure = httpx.HTTPStatusError(
            "500", request=httpx.Request("PUT", "https://x"), response=httpx.Response(500)
        )

        async def upload(_handle, manifest):
            if manifest.name == "package-lock.json":
                raise failure
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(manifest.name)
                raise

        client = _mock_client(handle, npm_and_pip_specs)
        client.upload_manifest = AsyncMock(side_effect=upload)

        with pytest.raises(httpx.HTTPStatusError) as exc:
            await ScanRunner(client, reporter=reporter, logger=MagicMock()).run(
                make_parameters(tmp_path)
            )

        assert exc.value is failure
        assert sorted(cancelled) == ["package.json", "requirements.txt"]
        client.start_scan.assert_not_awaited()

    @pytest.mark.anyio
    async def test_create_failure_propagates(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        client = _mock_client(handle, npm_and_pip_specs)
        client.create_scan = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(httpx.ConnectError):
            await ScanRunner(client, reporter=reporter, logger=MagicMock()).run(
                make_parameters(tmp_path)
            )
        client.list_supported_manifests.assert_not_awaited()

    @pytest.mark.anyio
    async def test_waits_for_scan_when_requested(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        _populate(tmp_path)
        client = _mock_client(handle, npm_and_pip_specs)
        client.check_scan_status = AsyncMock(
            side_effect=[
                ScanStatusReport(status=ScanStatus.QUEUED),
                ScanStatusReport(
                    status=ScanStatus.FINISHED,
                    result=ScanResultSummary(
                        report_url="https://app/final", vulnerabilities=2, violations=0
                    ),
                ),
            ]
        )
        params = make_parameters(tmp_path, wait_for_scan=True)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            outcome = await ScanRunner(client, reporter=reporter, logger=MagicMock()).run(params)

        client.check_scan_status.assert_awaited_with(handle.report_status_url)
        mock_sleep.assert_awaited_once_with(3.0)
        assert outcome.report.vulnerabilities == 2
        assert outcome.report.violations == 0
        assert outcome.report_url == "https://app/final"

    @pytest.mark.anyio
    async def test_failed_scan_raises(
        self, tmp_path, handle, npm_and_pip_specs, reporter, make_parameters
    ):
        _populate(tmp_path)
        client = _mock_client(handle, npm_and_pip_specs)
        client.check_scan_status = AsyncMock(
            return_value=ScanStatusReport(
                status=ScanStatus.FAILED_WITH_VULNERABILITIES,
                result=ScanResultSummary(vulnerabilities=4, violations=1),
            )
        )
        params = make_parameters(tmp_path, wait_for_scan=True)

        with pytest.raises(ScanFailedError, match="4 vulnerabilities and 1 violations"):
            await ScanRunner(client, reporter=reporter, logger=MagicMock()).run(params)

        assert (
            f"View the Security Analysis Scan results at: {handle.report_url}"
            in reporter.stream.getvalue()
        )

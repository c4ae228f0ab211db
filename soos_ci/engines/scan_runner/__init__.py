"""Scan runner engine: create, upload, start and optionally wait for a SOOS scan."""

from soos_ci.engines.scan_runner.models import ScanOutcome
from soos_ci.engines.scan_runner.poller import wait_for_scan
from soos_ci.engines.scan_runner.runner import ScanRunner, create_scan_name

__all__ = ["ScanOutcome", "ScanRunner", "create_scan_name", "wait_for_scan"]

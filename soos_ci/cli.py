"""CLI entry point for pipeline usage: soos-scan.

Every option can also be supplied through the environment, either as
``SOOS_<NAME>`` or through the Azure Pipelines task convention
``INPUT_<NAME>`` (e.g. ``INPUT_CLIENTID``):

    soos-scan --client-id C --api-key K --project my-app --path ./src --wait-for-scan true
"""

from __future__ import annotations

import asyncio
import sys
from typing import NoReturn

import click
import structlog

from soos_ci.api.client import SOOSClient
from soos_ci.config import ScanParameters, load_parameters
from soos_ci.core.logging import setup_logging
from soos_ci.core.pipeline import PipelineReporter, TaskResult
from soos_ci.engines.scan_runner import ScanOutcome, ScanRunner
from soos_ci.exceptions import SOOSError

log = structlog.get_logger("soos_ci.cli")


def _env(name: str) -> list[str]:
    """Environment variables read for the task input *name* (camelCase)."""
    snake = "".join(f"_{c}" if c.isupper() else c for c in name).upper()
    return [f"SOOS_{snake}", f"INPUT_{name.upper()}"]


async def _run(parameters: ScanParameters, reporter: PipelineReporter) -> ScanOutcome:
    async with SOOSClient(
        parameters.api_key,
        parameters.client_id,
        parameters.base_uri,
    ) as client:
        return await ScanRunner(client, reporter=reporter).run(parameters)


def _fail(reporter: PipelineReporter, exc: BaseException) -> NoReturn:
    message = str(exc) or repr(exc)
    log.error("task.failed", error_type=type(exc).__name__, message=message)
    reporter.log_issue(f"Task Failed. {message}")
    reporter.set_result(TaskResult.FAILED, message)
    sys.exit(1)


@click.command()
@click.option("--client-id", envvar=_env("clientId"), help="SOOS client id (required)")
@click.option("--api-key", envvar=_env("apiKey"), help="SOOS API key (required)")
@click.option("--project", envvar=_env("project"), help="Project name (required)")
@click.option("--base-uri", envvar=_env("baseUri"), help="SOOS API root")
@click.option("--path", envvar=_env("path"), help="Directory to search for manifests")
@click.option("--commit-hash", envvar=_env("commitHash"))
@click.option("--branch", envvar=_env("branch"))
@click.option("--build-version", envvar=_env("buildVersion"))
@click.option("--build-uri", envvar=_env("buildUri"))
@click.option("--branch-uri", envvar=_env("branchUri"))
@click.option("--integration-name", envvar=_env("integrationName"))
@click.option("--integration-type", envvar=_env("integrationType"))
@click.option(
    "--operating-environment",
    envvar=_env("operatingEnvironment"),
    help="Windows | MacOS | Linux (default: detected)",
)
@click.option(
    "--exclude-dir",
    "excluded_directories",
    envvar=_env("excludedDirectories"),
    help="Comma separated globs to skip (default: node_modules, bin, obj, lib at any depth)",
)
@click.option("--wait-for-scan", envvar=_env("waitForScan"), help="'true' to wait for the result")
@click.option("--poll-interval", envvar=_env("pollInterval"), help="Seconds between status checks")
@click.option(
    "--max-poll-attempts",
    envvar=_env("maxPollAttempts"),
    help="Give up after this many status checks (default: unbounded)",
)
@click.option(
    "--poll-timeout",
    envvar=_env("pollTimeout"),
    help="Give up after this many seconds of waiting (default: unbounded)",
)
@click.option("--verbose", envvar=_env("verbose"), help="'true' to log request/response bodies")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    envvar=_env("logFormat"),
    default=None,
)
def main(log_format: str | None, **options: str | None) -> None:
    """Upload dependency manifests to SOOS and report the scan result."""
    reporter = PipelineReporter()
    inputs = {
        "clientId": options["client_id"],
        "apiKey": options["api_key"],
        "project": options["project"],
        "baseUri": options["base_uri"],
        "path": options["path"],
        "commitHash": options["commit_hash"],
        "branch": options["branch"],
        "buildVersion": options["build_version"],
        "buildUri": options["build_uri"],
        "branchUri": options["branch_uri"],
        "integrationName": options["integration_name"],
        "integrationType": options["integration_type"],
        "operatingEnvironment": options["operating_environment"],
        "excludedDirectories": options["excluded_directories"],
        "waitForScan": options["wait_for_scan"],
        "pollInterval": options["poll_interval"],
        "maxPollAttempts": options["max_poll_attempts"],
        "pollTimeout": options["poll_timeout"],
        "verbose": options["verbose"],
    }

    try:
        parameters = load_parameters(inputs)
    except SOOSError as exc:
        setup_logging(log_format=log_format)
        _fail(reporter, exc)

    setup_logging(verbose=parameters.verbose, log_format=log_format)
    log.debug("task.parameters", **parameters.redacted())

    try:
        outcome = asyncio.run(_run(parameters, reporter))
    except Exception as exc:
        _fail(reporter, exc)

    if outcome.report is not None:
        click.echo(
            f"Scan completed with {outcome.report.vulnerabilities} vulnerabilities"
            f" and {outcome.report.violations} violations."
        )
        # The runner already printed the link handed out when the scan started.
        if outcome.report_url != outcome.handle.report_url:
            click.echo(f"View the Security Analysis Scan results at: {outcome.report_url}")
    reporter.set_result(TaskResult.SUCCEEDED, f"Scan {outcome.scan_name} submitted.")

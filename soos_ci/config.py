"""Task inputs: defaults, required-input checks and conversion.

Inputs arrive as strings keyed by their pipeline names (``clientId``,
``waitForScan``, ...).  The CLI fills them from options or from the
``SOOS_*`` / ``INPUT_*`` environment variables the pipeline agent sets.
"""

from __future__ import annotations

import platform
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from soos_ci.exceptions import InvalidParameterError, MissingParameterError

DEFAULT_BASE_URI = "https://api.soos.io/api/"
DEFAULT_INTEGRATION_NAME = "Azure DevOps Pipeline"
DEFAULT_INTEGRATION_TYPE = "CI"
DEFAULT_POLL_INTERVAL = 3.0  # seconds

DEFAULT_EXCLUDED_DIRECTORIES: tuple[str, ...] = (
    "**/node_modules/**",
    "**/bin/**",
    "**/obj/**",
    "**/lib/**",
)

_REDACTED = "********"

_OPERATING_ENVIRONMENTS = {
    "Windows": "Windows",
    "Darwin": "MacOS",
    "Linux": "Linux",
}


def detect_operating_environment(system: str | None = None) -> str:
    """Map the host OS family to the names the SOOS API expects."""
    system = system or platform.system()
    return _OPERATING_ENVIRONMENTS.get(system, system)


@dataclass(frozen=True)
class ScanParameters:
    client_id: str
    api_key: str
    project: str
    base_uri: str = DEFAULT_BASE_URI
    path: str = "."
    commit_hash: str | None = None
    branch: str | None = None
    build_version: str | None = None
    build_uri: str | None = None
    branch_uri: str | None = None
    integration_name: str = DEFAULT_INTEGRATION_NAME
    integration_type: str = DEFAULT_INTEGRATION_TYPE
    operating_environment: str = field(default_factory=detect_operating_environment)
    excluded_directories: tuple[str, ...] = DEFAULT_EXCLUDED_DIRECTORIES
    wait_for_scan: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_attempts: int | None = None
    poll_timeout: float | None = None
    verbose: bool = False

    def redacted(self) -> dict[str, Any]:
        """Parameters as a dict, safe to write to build logs."""
        data = asdict(self)
        data["api_key"] = _REDACTED
        return data


def parse_bool(value: str | bool | None) -> bool:
    """Only the literal ``true`` (any case) enables a flag."""
    if isinstance(value, bool):
        return value
    return value is not None and value.strip().lower() == "true"


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _number(name: str, value: Any, kind: type) -> Any:
    if value is None:
        return None
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Parameter '{name}' must be a number, got {value!r}.") from None
    if number <= 0:
        raise InvalidParameterError(f"Parameter '{name}' must be positive, got {value!r}.")
    return number


def _split_globs(value: Any) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_EXCLUDED_DIRECTORIES
    if isinstance(value, str):
        value = value.split(",")
    globs = tuple(item.strip() for item in value if item and item.strip())
    return globs or DEFAULT_EXCLUDED_DIRECTORIES


def load_parameters(inputs: Mapping[str, Any]) -> ScanParameters:
    """Build :class:`ScanParameters` from raw task inputs.

    Empty strings are treated as absent.  Raises :class:`MissingParameterError`
    for a missing required input before anything touches the network.
    """
    raw = {key: _clean(value) for key, value in inputs.items()}

    def required(name: str) -> str:
        value = raw.get(name)
        if value is None:
            raise MissingParameterError(name)
        return value

    def optional(name: str, default: Any = None) -> Any:
        value = raw.get(name)
        return default if value is None else value

    poll_interval = _number("pollInterval", raw.get("pollInterval"), float)

    return ScanParameters(
        client_id=required("clientId"),
        api_key=required("apiKey"),
        project=required("project"),
        base_uri=optional("baseUri", DEFAULT_BASE_URI),
        path=optional("path", "."),
        commit_hash=optional("commitHash"),
        branch=optional("branch"),
        build_version=optional("buildVersion"),
        build_uri=optional("buildUri"),
        branch_uri=optional("branchUri"),
        integration_name=optional("integrationName", DEFAULT_INTEGRATION_NAME),
        integration_type=optional("integrationType", DEFAULT_INTEGRATION_TYPE),
        operating_environment=optional("operatingEnvironment") or detect_operating_environment(),
        excluded_directories=_split_globs(raw.get("excludedDirectories")),
        wait_for_scan=parse_bool(raw.get("waitForScan")),
        poll_interval=DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval,
        max_poll_attempts=_number("maxPollAttempts", raw.get("maxPollAttempts"), int),
        poll_timeout=_number("pollTimeout", raw.get("pollTimeout"), float),
        verbose=parse_bool(raw.get("verbose")),
    )

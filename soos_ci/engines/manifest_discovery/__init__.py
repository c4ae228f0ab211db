"""Manifest discovery engine: find dependency manifests in a source tree."""

from soos_ci.engines.manifest_discovery.discovery import (
    build_glob_pattern,
    discover_manifests,
    expand_braces,
    glob_to_regex,
)
from soos_ci.engines.manifest_discovery.models import ManifestFile

__all__ = [
    "ManifestFile",
    "build_glob_pattern",
    "discover_manifests",
    "expand_braces",
    "glob_to_regex",
]

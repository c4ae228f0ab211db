"""Data models for the manifest discovery engine."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ManifestFile:
    """A manifest found on disk, ready to upload."""

    name: str  # base filename
    path: Path  # absolute

"""Walk a source tree and match files against the service's manifest patterns.

Glob semantics follow the ones build agents use for ``**/`` patterns:

* matching is case-insensitive and relative to the search root;
* ``**`` spans any number of directories, ``*`` and ``?`` stay within one;
* ``{a,b}`` expands to alternatives before matching (nesting allowed);
* wildcards never match a leading ``.`` of a path segment, so dot-files and
  dot-directories are only found by a pattern that spells the dot out.

The root is always passed explicitly; the process working directory is
never changed, so discovery is safe to run alongside other work.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from soos_ci.config import DEFAULT_EXCLUDED_DIRECTORIES
from soos_ci.engines.manifest_discovery.models import ManifestFile

if TYPE_CHECKING:
    from soos_ci.api.schemas import PackageManagerManifests

_log = structlog.get_logger("soos_ci.discovery")


def build_glob_pattern(pattern: str) -> str:
    """Root a manifest pattern at any depth.

    ``package.json`` / ``requirements*.txt`` -> ``**/<pattern>`` (name match);
    ``.csproj`` / ``.lock`` -> ``**/*<pattern>`` (ends-with match).
    """
    if pattern.startswith("."):
        return f"**/*{pattern}"
    return f"**/{pattern}"


def _split_alternatives(body: str) -> list[str]:
    parts: list[str] = []
    depth = last = 0
    for i, c in enumerate(body):
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
        elif c == "," and depth == 0:
            parts.append(body[last:i])
            last = i + 1
    parts.append(body[last:])
    return parts


def expand_braces(glob: str) -> list[str]:
    """Expand ``{a,b}`` alternatives, nested ones included.

    ``src/{web,api}/*.json`` -> ``["src/web/*.json", "src/api/*.json"]``.
    A group without a comma (``{a}``) or without a closing brace is literal.
    """
    depth = 0
    start = -1
    for i, c in enumerate(glob):
        if c == "{":
            if depth == 0:
                start = i
            depth += 1
        elif c == "}" and depth:
            depth -= 1
            if depth == 0:
                alternatives = _split_alternatives(glob[start + 1 : i])
                if len(alternatives) < 2:
                    continue
                head, tail = glob[:start], glob[i + 1 :]
                return [
                    expanded
                    for alternative in alternatives
                    for expanded in expand_braces(head + alternative + tail)
                ]
    return [glob]


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a ``/``-separated glob into a case-insensitive regex."""
    alternatives = "|".join(f"(?:{_translate(g)})" for g in expand_braces(glob))
    return re.compile(f"(?:{alternatives})", re.IGNORECASE)


def _translate(glob: str) -> str:
    parts: list[str] = []
    i, n = 0, len(glob)
    while i < n:
        at_segment_start = i == 0 or glob[i - 1] == "/"
        if glob.startswith("**/", i) and at_segment_start:
            parts.append(r"(?:(?!\.)[^/]*/)*")
            i += 3
        elif glob.startswith("**", i) and at_segment_start and i + 2 == n:
            parts.append(r"(?:(?!\.)[^/]*(?:/|$))*")
            i += 2
        elif glob[i] == "*":
            parts.append(r"(?!\.)[^/]*" if at_segment_start else r"[^/]*")
            i += 1
        elif glob[i] == "?":
            parts.append(r"(?!\.)[^/]" if at_segment_start else r"[^/]")
            i += 1
        elif glob[i] == "[":
            end = glob.find("]", i + 1)
            if end == -1:
                parts.append(re.escape("["))
                i += 1
            else:
                body = glob[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end + 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return "".join(parts)


def _walk(root: Path, excluded: Sequence[re.Pattern[str]]) -> list[str]:
    """Return every non-excluded file below *root* as a sorted relative posix path."""
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        # Prune in place; "**" never descends into dot-directories.
        dirnames[:] = [
            d
            for d in dirnames
            if not d.startswith(".")
            and not any(rx.fullmatch(f"{prefix}{d}/") for rx in excluded)
        ]
        for filename in filenames:
            rel = f"{prefix}{filename}"
            if not any(rx.fullmatch(rel) for rx in excluded):
                found.append(rel)
    found.sort()
    return found


def discover_manifests(
    root: str | os.PathLike[str],
    manifest_specs: Iterable[PackageManagerManifests],
    excluded_directories: Sequence[str] = DEFAULT_EXCLUDED_DIRECTORIES,
    *,
    logger: Any = None,
) -> list[ManifestFile]:
    """Find every file under *root* matching a supported manifest pattern.

    Results are ordered by package manager, then pattern, then path.  A file
    matched by two overlapping patterns is returned twice.  Finding nothing
    is not an error here; the caller decides.
    """
    log = logger or _log
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise FileNotFoundError(f"search path {root_path} is not a directory")
    log.info("discovery.start", root=str(root_path), excluded=list(excluded_directories))

    excluded = [glob_to_regex(glob) for glob in excluded_directories]
    candidates = _walk(root_path, excluded)

    matched: list[Path] = []
    for spec in manifest_specs:
        for manifest in spec.manifests:
            glob = build_glob_pattern(manifest.pattern)
            rx = glob_to_regex(glob)
            hits = [root_path / rel for rel in candidates if rx.fullmatch(rel)]
            log.info(
                "discovery.pattern",
                package_manager=spec.package_manager,
                pattern=glob,
                count=len(hits),
            )
            matched.extend(hits)

    files: list[ManifestFile] = []
    for path in matched:
        content = path.read_text(encoding="utf-8", errors="replace")
        log.info("discovery.manifest", name=path.name, path=str(path), length=len(content))
        files.append(ManifestFile(name=path.name, path=path))
    return files

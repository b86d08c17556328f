"""Stage completion markers.

A marker is a small ``KEY=value`` file written when a stage completes and
read back by later stages or later invocations:

    .shipctl/<context>/build.env    IMAGE_TAG, LOCAL_IMAGE_REF
    .shipctl/<context>/push.env     REMOTE_IMAGE_REF

Within one run the typed records are passed directly between stages; the
files only make the pipeline resumable across invocations.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..platform.files import atomic_write_text
from .result import Err, Ok, Result

__all__ = [
    "BUILD_MARKER",
    "PUSH_MARKER",
    "BuildMarker",
    "MarkerError",
    "PushMarker",
    "clear_marker",
    "is_dockerignored",
    "newest_source_mtime",
    "read_build_marker",
    "read_dockerignore",
    "read_push_marker",
    "write_build_marker",
    "write_push_marker",
]

BUILD_MARKER = "build.env"
PUSH_MARKER = "push.env"
DOCKERIGNORE = ".dockerignore"

_IGNORED_DIRS = frozenset(
    {
        ".git",
        ".shipctl",
        ".venv",
        "venv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        "node_modules",
        "backups",
    }
)


@dataclass(frozen=True, slots=True)
class MarkerError:
    message: str
    path: Path


@dataclass(frozen=True, slots=True)
class BuildMarker:
    image_tag: str
    local_image_ref: str


@dataclass(frozen=True, slots=True)
class PushMarker:
    remote_image_ref: str

    @property
    def image_tag(self) -> str:
        _, _, tag = self.remote_image_ref.rpartition(":")
        return tag


def _format(values: dict[str, str]) -> str:
    return "".join(f"{k}={v}\n" for k, v in values.items())


def _parse(text: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        out[key.strip()] = value.strip()
    return out


def _read(path: Path) -> Result[dict[str, str] | None, MarkerError]:
    if not path.exists():
        return Ok(None)
    try:
        return Ok(_parse(path.read_text(encoding="utf-8")))
    except (OSError, UnicodeDecodeError) as e:
        return Err(MarkerError(message=f"cannot read marker: {e}", path=path))


def write_build_marker(markers_dir: Path, marker: BuildMarker) -> Path:
    path = markers_dir / BUILD_MARKER
    atomic_write_text(
        path,
        _format({"IMAGE_TAG": marker.image_tag, "LOCAL_IMAGE_REF": marker.local_image_ref}),
    )
    return path


def read_build_marker(markers_dir: Path) -> Result[BuildMarker | None, MarkerError]:
    """Read the build marker; Ok(None) when absent or incomplete."""
    path = markers_dir / BUILD_MARKER
    result = _read(path)
    if isinstance(result, Err):
        return result
    values = result.value
    if values is None:
        return Ok(None)
    tag = values.get("IMAGE_TAG")
    ref = values.get("LOCAL_IMAGE_REF")
    if not tag or not ref:
        return Ok(None)
    return Ok(BuildMarker(image_tag=tag, local_image_ref=ref))


def write_push_marker(markers_dir: Path, marker: PushMarker) -> Path:
    path = markers_dir / PUSH_MARKER
    atomic_write_text(path, _format({"REMOTE_IMAGE_REF": marker.remote_image_ref}))
    return path


def read_push_marker(markers_dir: Path) -> Result[PushMarker | None, MarkerError]:
    path = markers_dir / PUSH_MARKER
    result = _read(path)
    if isinstance(result, Err):
        return result
    values = result.value
    if values is None:
        return Ok(None)
    ref = values.get("REMOTE_IMAGE_REF")
    if not ref:
        return Ok(None)
    return Ok(PushMarker(remote_image_ref=ref))


def clear_marker(markers_dir: Path, name: str) -> None:
    (markers_dir / name).unlink(missing_ok=True)
def read_dockerignore(root: Path) -> list[str]:
    """Patterns from ``<root>/.dockerignore`` (``!`` re-includes), in file order."""
    path = root / DOCKERIGNORE
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    patterns: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        negated = line.startswith("!")
        pattern = line.lstrip("!").strip().strip("/")
        if pattern.startswith("**/"):
            pattern = pattern[3:]
        if pattern:
            patterns.append(f"!{pattern}" if negated else pattern)
    return patterns


def _matches(rel: str, pattern: str) -> bool:
    # A pattern naming a directory also excludes everything below it.
    parts = rel.split("/")
    return any(
        fnmatch.fnmatchcase("/".join(parts[:i]), pattern) for i in range(1, len(parts) + 1)
    )


def is_dockerignored(rel: str, patterns: Sequence[str]) -> bool:
    """Last matching pattern wins, as docker does."""
    ignored = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if _matches(rel, pattern[1:]):
                ignored = False
        elif _matches(rel, pattern):
            ignored = True
    return ignored


def _iter_sources(root: Path, exclude: frozenset[Path]) -> Iterator[Path]:
    patterns = read_dockerignore(root)
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = [
            d for d in dirnames if d not in _IGNORED_DIRS and (current / d) not in exclude
        ]
        for filename in filenames:
            path = current / filename
            if patterns and is_dockerignored(path.relative_to(root).as_posix(), patterns):
                continue
            yield path


def newest_source_mtime(root: Path, *, exclude: Iterable[Path] = ()) -> float:
    """Return the newest mtime of any file in the build context.

    Used like make's prerequisite check: a marker older than this is stale.
    Files matched by ``.dockerignore`` and directories in ``exclude`` are
    not part of the build context.
    """
    newest = 0.0
    for path in _iter_sources(root.resolve(), frozenset(p.resolve() for p in exclude)):
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if mtime > newest:
            newest = mtime
    return newest

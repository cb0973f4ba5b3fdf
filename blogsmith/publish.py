from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Optional

from .errors import WriteError
from .models import Page

logger = logging.getLogger(__name__)

BUILD_MARKER = "build-info.json"


def check_output_dir(output_dir: Path, project_root: Path) -> None:
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved or root_resolved.is_relative_to(output_resolved):
        raise WriteError(output_dir, "refusing to replace a directory that contains the project root")


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    check_output_dir(output_dir, project_root)
    if not output_dir.resolve().is_relative_to(project_root.resolve()):
        raise WriteError(output_dir, "refusing to clean an output directory outside the project root")
    shutil.rmtree(output_dir)


def target_path(root: Path, rel: str) -> Path:
    parts = PurePosixPath(rel).parts
    if not parts or PurePosixPath(rel).is_absolute() or ".." in parts:
        raise WriteError(root / rel, "output path escapes the output directory")
    return root.joinpath(*parts)


def write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def copy_static(static_dir: Path, output_dir: Path) -> None:
    for item in sorted(static_dir.iterdir()):
        dest = output_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(item, dest)


def build_marker(built_at: str) -> str:
    return json.dumps({"built_at": built_at}, indent=2) + "\n"


def _swap(staging: Path, output_dir: Path) -> None:
    if not output_dir.exists():
        os.replace(staging, output_dir)
        return
    backup = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-old-", dir=output_dir.parent))
    backup.rmdir()
    os.replace(output_dir, backup)
    try:
        os.replace(staging, output_dir)
    except OSError:
        os.replace(backup, output_dir)
        raise
    shutil.rmtree(backup, ignore_errors=True)


def publish(
    pages: Iterable[Page],
    output_dir: Path,
    assets: Iterable[tuple[Path, str]] = (),
    static_dirs: Iterable[Path] = (),
    extra_files: Optional[Mapping[str, str]] = None,
    project_root: Optional[Path] = None,
) -> int:
    """Write a complete output tree, or nothing at all.

    Everything goes into a staging directory beside ``output_dir`` which
    replaces it only once every file has been written. Files from
    ``static_dirs`` are copied over the rendered pages, later directories
    winning. Returns the number of files written.
    """
    output_dir = Path(output_dir)
    if project_root is not None:
        check_output_dir(output_dir, project_root)

    try:
        output_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-", dir=output_dir.parent))
        staging.chmod(0o755)
    except OSError as exc:
        raise WriteError(output_dir, exc.strerror or str(exc)) from exc

    count = 0
    try:
        for page in pages:
            write_bytes(target_path(staging, page.path), page.content)
            count += 1
        for static_dir in static_dirs:
            if static_dir.is_dir():
                copy_static(static_dir, staging)
        for source, rel in assets:
            dest = target_path(staging, rel)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
            count += 1
        for rel, text in (extra_files or {}).items():
            write_bytes(target_path(staging, rel), text.encode("utf-8"))
            count += 1
        _swap(staging, output_dir)
    except WriteError:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        path = Path(exc.filename) if exc.filename else output_dir
        raise WriteError(path, exc.strerror or str(exc)) from exc

    logger.info("Published %d files to %s", count, output_dir)
    return count

"""Deployable archives for function code and the shared dependency layer."""

from __future__ import annotations

import asyncio
import fnmatch
import io
import logging
import os
import shutil
import sys
import tempfile
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from lambdasync.core.manifest import DependencyManifest
from lambdasync.core.runner import CommandRunner

logger = logging.getLogger("lambdasync.packaging")

# Never shipped inside the function archive.
ALWAYS_IGNORED = (
    "node_modules/**",
    ".git/**",
    ".venv/**",
    "__pycache__/**",
    ".env",
)

_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def build_code_archive(project_dir: Path, ignore: Sequence[str] = ()) -> bytes:
    """Zip the project tree, skipping ignore globs plus ALWAYS_IGNORED."""
    root = Path(project_dir).resolve()
    patterns = tuple(ALWAYS_IGNORED) + tuple(ignore)
    files = list(_iter_files(root, patterns))
    logger.debug("Packaging %d files from %s", len(files), root)
    return _zip_files(root, files)


def build_layer_archive(staging_dir: Path) -> bytes:
    root = Path(staging_dir).resolve()
    return _zip_files(root, list(_iter_files(root, ())))


async def build_layer(
    manifest: DependencyManifest,
    runner: CommandRunner,
    *,
    npm_bin: str = "npm",
    python_bin: str | None = None,
) -> bytes:
    """
    Install the manifest's dependencies into a private staging directory and zip it.

    The staging directory is removed whether the install succeeds or not.
    """
    with tempfile.TemporaryDirectory(prefix="layer-") as tmp:
        staging = Path(tmp)
        target = staging / manifest.layer_prefix
        target.mkdir(parents=True)

        copied: list[Path] = []
        if manifest.kind == "npm":
            # npm installs from the manifest found under --prefix.
            for source in (manifest.path, *manifest.extra_files):
                copy = target / source.name
                shutil.copyfile(source, copy)
                copied.append(copy)
            cmd = [
                runner.require_command(npm_bin),
                "install",
                "--omit=dev",
                f"--prefix={target}",
                "--cpu=x86_64",
                "--os=linux",
            ]
        else:
            # pip reads the project file in place so -r/-c includes resolve
            # relative to it.
            cmd = [
                python_bin or sys.executable,
                "-m",
                "pip",
                "install",
                "--disable-pip-version-check",
                "--no-compile",
                "-r",
                str(manifest.path),
                "--target",
                str(target),
            ]
        await runner.run(cmd, cwd=target)

        for copy in copied:
            copy.unlink(missing_ok=True)

        return await asyncio.to_thread(build_layer_archive, staging)


def is_ignored(relative: str, patterns: Iterable[str]) -> bool:
    """Match a POSIX relative path against glob patterns (``dir/**`` covers a subtree)."""
    name = relative.rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = pattern.strip()
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if pattern == "":
            continue
        if pattern.endswith("/**"):
            base = pattern[:-3].rstrip("/")
            if relative == base or relative.startswith(base + "/"):
                return True
            if "/" not in base and base in relative.split("/"):
                return True
        if fnmatch.fnmatchcase(relative, pattern):
            return True
        if "/" not in pattern and fnmatch.fnmatchcase(name, pattern):
            return True
    return False


def _iter_files(root: Path, patterns: Sequence[str]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept_dirs = []
        for dirname in sorted(dirnames):
            rel = (current / dirname).relative_to(root).as_posix()
            if not is_ignored(rel, patterns):
                kept_dirs.append(dirname)
        dirnames[:] = kept_dirs
        for filename in sorted(filenames):
            path = current / filename
            rel = path.relative_to(root).as_posix()
            if is_ignored(rel, patterns):
                continue
            yield path


def _zip_files(root: Path, files: Sequence[Path]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for path in sorted(files, key=lambda p: p.relative_to(root).as_posix()):
            info = zipfile.ZipInfo(path.relative_to(root).as_posix(), date_time=_FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = (path.stat().st_mode & 0xFFFF) << 16
            zf.writestr(info, path.read_bytes(), compresslevel=9)
    return buffer.getvalue()

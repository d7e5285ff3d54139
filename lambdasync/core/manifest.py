"""Dependency manifest discovery for the shared layer."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from lambdasync.core.errors import ConfigError

NPM_MANIFEST = "package.json"
NPM_LOCK_FILES = ("package-lock.json", "npm-shrinkwrap.json")
PIP_MANIFEST = "requirements.txt"

# Directory inside the layer archive where each runtime looks for dependencies.
LAYER_PREFIXES = {"npm": "nodejs", "pip": "python"}

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)(\[[^\]]*\])?\s*(.*)$")
_INCLUDE_OPTION = re.compile(
    r"^(--requirement|--constraint|-r|-c)(?:\s*=\s*|\s+|(?=[^\s=-]))(\S.*)$"
)


@dataclass(frozen=True)
class DependencyManifest:
    kind: str
    path: Path
    dependencies: dict[str, str]
    extra_files: tuple[Path, ...] = ()

    @property
    def layer_prefix(self) -> str:
        return LAYER_PREFIXES[self.kind]


def load_dependency_manifest(project_dir: Path) -> DependencyManifest | None:
    """
    Find the project's dependency manifest.

    package.json wins over requirements.txt. Returns None when neither exists,
    which means the service has no shared layer.
    """
    root = Path(project_dir)
    npm_manifest = root / NPM_MANIFEST
    if npm_manifest.is_file():
        return _load_npm_manifest(npm_manifest)

    pip_manifest = root / PIP_MANIFEST
    if pip_manifest.is_file():
        return _load_pip_manifest(pip_manifest)

    return None


def _load_npm_manifest(path: Path) -> DependencyManifest:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(payload, dict):
        raise ConfigError(f"{path.name} must be a JSON object: {path}")

    raw = payload.get("dependencies") or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"dependencies must be an object in {path}")

    dependencies: dict[str, str] = {}
    for name, constraint in raw.items():
        if not isinstance(constraint, str):
            raise ConfigError(f"dependency {name!r} must map to a version string in {path}")
        dependencies[str(name)] = constraint

    extra_files = tuple(
        path.parent / lock for lock in NPM_LOCK_FILES if (path.parent / lock).is_file()
    )
    return DependencyManifest(
        kind="npm", path=path, dependencies=dependencies, extra_files=extra_files
    )


def _load_pip_manifest(path: Path) -> DependencyManifest:
    dependencies: dict[str, str] = {}
    visited: list[Path] = []
    _read_requirements(path, dependencies, visited, constraint=False)
    # extra_files lists the files pulled in through -r/-c, in reading order.
    return DependencyManifest(
        kind="pip", path=path, dependencies=dependencies, extra_files=tuple(visited[1:])
    )


def _read_requirements(
    path: Path, dependencies: dict[str, str], visited: list[Path], *, constraint: bool
) -> None:
    if any(path.resolve() == seen.resolve() for seen in visited):
        return
    visited.append(path)

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    for lineno, raw in enumerate(lines, start=1):
        line = raw.split(" #", 1)[0].strip()
        if line == "" or line.startswith("#"):
            continue

        include = _INCLUDE_OPTION.match(line)
        if include is not None:
            option, target = include.groups()
            child = path.parent / target.strip()
            if not child.is_file():
                raise ConfigError(f"included file not found at {path}:{lineno}: {target.strip()}")
            _read_requirements(
                child,
                dependencies,
                visited,
                constraint=constraint or option in ("-c", "--constraint"),
            )
            continue

        # Index and install options do not change what gets installed.
        if line.startswith("-"):
            continue

        match = _REQUIREMENT_NAME.match(line)
        if match is None:
            raise ConfigError(f"cannot parse requirement at {path}:{lineno}: {raw.strip()!r}")
        name, extras, specifier = match.groups()
        key = name.lower().replace("_", "-") + (extras or "")
        if constraint:
            key = f"constraint:{key}"
        dependencies[key] = specifier.replace(" ", "")

"""phonicscore package."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _version_from_pyproject() -> str | None:
    """Best-effort version lookup from a source checkout's pyproject.toml."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            return None
        project = data.get("project", {})
        if project.get("name") != "phonicscore":
            continue
        value = project.get("version")
        return str(value) if value else None
    return None


_project_version = _version_from_pyproject()
if _project_version is not None:
    __version__ = _project_version
else:
    try:
        __version__ = version("phonicscore")
    except PackageNotFoundError:
        __version__ = "0+unknown"

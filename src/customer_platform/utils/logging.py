"""
Service name and version for log records and the OpenAPI document.

Both come from the installed `customer-platform` distribution; in a source
checkout without an install they are read from the nearest pyproject.toml.
"""
from functools import lru_cache
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any
import tomllib

PROJECT_DISTRIBUTION = "customer-platform"
_SEARCH_DEPTH = 5


@lru_cache(maxsize=8)
def _nearest_pyproject(start: Path) -> dict:
    """Parsed pyproject.toml at or above `start`; {} when none is readable."""
    for directory in [start, *start.parents][:_SEARCH_DEPTH]:
        path = directory / "pyproject.toml"
        if not path.is_file():
            continue
        try:
            with path.open("rb") as fh:
                return tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError):
            return {}
    return {}


def get_pyproject_value(key: str, start: str | Path | None = None, default: Any = None) -> Any:
    """Look up a dotted key such as "project.version" in the nearest pyproject.toml."""
    here = Path(start).resolve() if start is not None else Path(__file__).resolve().parent
    node: Any = _nearest_pyproject(here)
    for part in key.split(".") if key else ():
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node if key else default


def get_project_name(start: str | Path | None = None, default: str | None = None) -> str | None:
    return get_pyproject_value("project.name", start=start, default=default)


def get_project_version(start: str | Path | None = None, default: str = "unknown") -> str:
    try:
        return importlib_metadata.version(PROJECT_DISTRIBUTION)
    except importlib_metadata.PackageNotFoundError:
        pass
    return get_pyproject_value("project.version", start=start, default=default)


__all__ = ["get_pyproject_value", "get_project_name", "get_project_version"]

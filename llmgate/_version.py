"""Package version lookup."""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION = "llmgate"
UNKNOWN_VERSION = "0.0.0"
PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def source_tree_version(pyproject: Path = PYPROJECT) -> str:
    """Read ``[project].version`` from a checkout's pyproject.toml."""
    if not pyproject.is_file():
        return UNKNOWN_VERSION
    with pyproject.open("rb") as f:
        project = tomllib.load(f).get("project", {})
    return str(project.get("version", UNKNOWN_VERSION))


def get_version() -> str:
    """Version of the installed distribution, or of the uninstalled checkout."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return source_tree_version(PYPROJECT)

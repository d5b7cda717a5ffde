"""SOCKS5 proxy server with TCP CONNECT and UDP ASSOCIATE relaying."""

import pathlib
import sys
from importlib import metadata

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

PROJECT_NAME = "socks5-relay"


def get_version() -> str:
    """Read version from pyproject.toml, falling back to installed metadata."""
    current_dir = pathlib.Path(__file__).parent
    for parent in current_dir.parents:
        pyproject_path = parent / "pyproject.toml"
        if not pyproject_path.exists():
            continue
        with pyproject_path.open("rb") as f:
            project = tomllib.load(f).get("project", {})
        # Skip unrelated projects when installed inside another checkout
        if project.get("name") == PROJECT_NAME:
            return project["version"]

    try:
        return metadata.version(PROJECT_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()

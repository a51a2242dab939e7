"""
Version information for the Warp SDK.
"""
import importlib.metadata
import pathlib

import tomli

FALLBACK_VERSION = "0.3.0"


def _read_pyproject_version() -> str:
    path = pathlib.Path(__file__).parent.parent / "pyproject.toml"
    try:
        with path.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION


try:
    __version__ = importlib.metadata.version("warp-sdk")
except importlib.metadata.PackageNotFoundError:
    # source checkout
    __version__ = _read_pyproject_version()

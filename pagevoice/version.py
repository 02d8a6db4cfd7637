from __future__ import annotations

from importlib import metadata

__version__ = "0.3.0"


def get_version() -> str:
    """Installed distribution version, or the in-tree one for source checkouts."""
    try:
        return metadata.version("pagevoice")
    except metadata.PackageNotFoundError:
        return __version__

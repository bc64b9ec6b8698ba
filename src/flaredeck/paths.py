import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

__all__ = [
    "cert_dir",
    "global_config_path",
    "project_tmp_dir",
    "registry_path",
]


def global_config_path(override: Path | None = None) -> Path:
    """
    Resolve the user-scoped configuration directory.

    ``~/.flaredeck`` wins when it already exists, otherwise the XDG config home is used.
    """
    if override is not None:
        return override

    legacy = Path.home() / ".flaredeck"
    if legacy.is_dir():
        return legacy

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return base / "flaredeck"


def cert_dir(config_home: Path | None = None) -> Path:
    return global_config_path(config_home) / "local-cert"


def registry_path(config_home: Path | None = None) -> Path:
    return global_config_path(config_home) / "registry"


@contextmanager
def project_tmp_dir(project_root: Path | None, prefix: str) -> Iterator[Path]:
    """
    Create a scratch directory under ``<project_root>/.flaredeck/tmp``.

    The directory and everything in it are removed when the block exits, whether it
    returns normally or raises.
    """
    root = (project_root or Path.cwd()) / ".flaredeck" / "tmp"
    root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=root))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)

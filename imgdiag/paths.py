from __future__ import annotations

import stat
from pathlib import Path

from imgdiag.config import HIDDEN_NAMES


class ScanSetupError(RuntimeError):
    pass


def is_hidden_name(name: str) -> bool:
    return name.startswith(".") or name in HIDDEN_NAMES


def resolve_directory(label: str, path: Path) -> Path:
    resolved = Path(path).expanduser().resolve()
    try:
        st = resolved.stat()
    except OSError as exc:
        raise ScanSetupError(f"{label} error: {exc}") from exc

    if not stat.S_ISDIR(st.st_mode):
        raise ScanSetupError(f"{label} is not a directory")
    return resolved


def is_within(path: Path, parent: Path) -> bool:
    """True when ``path`` lies strictly below ``parent``."""
    return path != parent and parent in path.parents

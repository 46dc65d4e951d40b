from __future__ import annotations

import re
import string
from pathlib import Path, PurePosixPath

from imgdiag.config import UNKNOWN_DEVICE
from imgdiag.models import MediaInfo

LAYOUT_FIELDS = ("year", "month", "day", "device", "type", "source")
UNDATED = "Undated"

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def validate_layout(layout: str) -> str:
    """Reject templates that reference unknown fields or escape the organize root."""
    if not layout.strip():
        raise ValueError("layout is empty")

    names = [name for _, name, _, _ in string.Formatter().parse(layout) if name is not None]
    if "" in names:
        raise ValueError("layout fields must be named, e.g. {year}")
    unknown = sorted({name for name in names if name not in LAYOUT_FIELDS})
    if unknown:
        raise ValueError(f"unknown layout field(s): {','.join(unknown)} (allowed: {','.join(LAYOUT_FIELDS)})")

    rel = PurePosixPath(layout.replace("\\", "/"))
    if rel.is_absolute() or ".." in rel.parts:
        raise ValueError("layout must be a relative path inside the organize directory")
    return layout


def safe_component(value: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", value).strip(" .")
    return cleaned or UNKNOWN_DEVICE


def layout_fields(info: MediaInfo) -> dict[str, str]:
    taken = info.taken_at
    return {
        "year": f"{taken.year:04d}" if taken else UNDATED,
        "month": f"{taken.month:02d}" if taken else UNDATED,
        "day": f"{taken.day:02d}" if taken else UNDATED,
        "device": safe_component(info.device or UNKNOWN_DEVICE),
        "type": info.detected_type,
        "source": info.date_source,
    }


def target_dir(root: Path, info: MediaInfo, layout: str) -> Path:
    """Directory (under ``root``) a valid file belongs in."""
    rel = layout.format(**layout_fields(info)).replace("\\", "/")
    parts = [part for part in rel.split("/") if part not in ("", ".")]
    return root.joinpath(*parts)

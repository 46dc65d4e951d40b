from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image

from imgdiag.formats import detect_type
from imgdiag.models import MediaInfo
from imgdiag.time_utils import mtime_datetime, parse_exif_datetime

# Preferred order: when the shutter fired, when it was digitised, last edit.
_SUBIFD_DATE_TAGS = (ExifTags.Base.DateTimeOriginal, ExifTags.Base.DateTimeDigitized)


def _clean(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if not isinstance(value, str):
        return ""
    return " ".join(value.replace("\x00", " ").split())


def device_name(make: Any, model: Any) -> str | None:
    make_s = _clean(make)
    model_s = _clean(model)
    if not model_s:
        return make_s or None
    if not make_s or model_s.lower().startswith(make_s.lower()):
        return model_s
    return f"{make_s} {model_s}"


def capture_date(ifd0: dict[int, Any], exif_ifd: dict[int, Any]) -> datetime | None:
    for tag in _SUBIFD_DATE_TAGS:
        parsed = parse_exif_datetime(exif_ifd.get(tag) or ifd0.get(tag))
        if parsed is not None:
            return parsed
    return parse_exif_datetime(ifd0.get(ExifTags.Base.DateTime))


def read_exif(path: Path) -> tuple[dict[int, Any], dict[int, Any]]:
    """Return (IFD0, Exif sub-IFD) tag mappings; both empty when unreadable."""
    try:
        with Image.open(path) as img:
            exif = img.getexif()
            return dict(exif), dict(exif.get_ifd(ExifTags.IFD.Exif))
    except Exception:  # noqa: BLE001
        return {}, {}


def read_metadata(path: Path, detected_type: str | None = None) -> MediaInfo:
    ifd0, exif_ifd = read_exif(path)

    taken_at = capture_date(ifd0, exif_ifd)
    source = "exif"
    if taken_at is None:
        taken_at = mtime_datetime(path.stat().st_mtime)
        source = "mtime"

    return MediaInfo(
        path=path,
        detected_type=detected_type or detect_type(path) or "UNKNOWN",
        taken_at=taken_at,
        date_source=source,
        device=device_name(ifd0.get(ExifTags.Base.Make), ifd0.get(ExifTags.Base.Model)),
    )

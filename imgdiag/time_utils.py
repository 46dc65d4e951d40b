from __future__ import annotations

from datetime import datetime

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def now_local() -> datetime:
    return datetime.now().astimezone()


def timestamp_str() -> str:
    return now_local().isoformat(timespec="seconds")


def clock_str() -> str:
    return now_local().strftime("%H:%M:%S")


def parse_exif_datetime(value: object) -> datetime | None:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` value.

    Cameras without a set clock write all-zero or blank dates; those, and any
    other unparsable value, come back as None.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None

    text = value.strip().strip("\x00").strip()
    if not text or text.startswith("0000"):
        return None

    # Some writers append subseconds or a timezone; only the first 19 chars are standard.
    try:
        return datetime.strptime(text[:19], EXIF_DATETIME_FORMAT)
    except ValueError:
        return None


def mtime_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(slots=True)
class MediaFile:
    path: Path
    detected_type: str
    size: int


@dataclass(slots=True)
class MediaInfo:
    path: Path
    detected_type: str
    taken_at: datetime | None = None
    date_source: str = "mtime"
    device: str | None = None


@dataclass(slots=True)
class FileOutcome:
    path: str
    reason: str
    detected_type: str
    detail: str | None = None
    moved_to: str | None = None

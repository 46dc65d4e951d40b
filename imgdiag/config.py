from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# extension -> detected type
SUPPORTED_EXTENSIONS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".tif": "TIFF",
    ".tiff": "TIFF",
    ".png": "PNG",
    ".heic": "HEIC",
    ".heif": "HEIC",
}

# Anything smaller cannot hold a valid header for any supported type.
MIN_FILE_SIZE = 3

DEFAULT_LAYOUT = "{year}/{year}-{month}/{device}"
UNKNOWN_DEVICE = "Unknown Device"

# Always skipped unless hidden processing is on, regardless of the dot rule.
HIDDEN_NAMES = {"$RECYCLE.BIN", "System Volume Information"}


@dataclass
class ScanConfig:
    scan_path: Path
    move_path: Path | None = None
    organize_path: Path | None = None
    layout: str = DEFAULT_LAYOUT

    # Empty means every supported extension.
    extensions: list[str] = field(default_factory=list)

    process_hidden: bool = False

    # Organizer
    copy_organized: bool = False

    # Checker
    decode: bool = True

    record_path: Path | None = None
    report_path: Path | None = None

    dry_run: bool = False

    def selected_extensions(self) -> set[str]:
        return set(self.extensions) if self.extensions else set(SUPPORTED_EXTENSIONS)

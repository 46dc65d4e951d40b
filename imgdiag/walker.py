from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

from imgdiag.config import ScanConfig
from imgdiag.formats import detect_type
from imgdiag.log import EventLogger
from imgdiag.models import FileOutcome, MediaFile
from imgdiag.paths import is_hidden_name, is_within


def excluded_dirs(config: ScanConfig) -> set[Path]:
    """Output directories that must not be scanned as input."""
    excluded: set[Path] = set()
    if config.move_path is not None:
        excluded.add(config.move_path)
    # Organizing in place (organize == scan) keeps the whole tree in the walk.
    if config.organize_path is not None and is_within(config.organize_path, config.scan_path):
        excluded.add(config.organize_path)
    return excluded


def iter_media_files(config: ScanConfig, log: EventLogger) -> Iterator[MediaFile | FileOutcome]:
    """Yield candidate files, and an ERROR outcome for anything the walk could not read."""
    root = config.scan_path
    excluded = excluded_dirs(config)
    selected = config.selected_extensions()
    walk_errors: list[FileOutcome] = []

    def on_error(exc: OSError) -> None:
        log.error("failed to read directory", path=exc.filename, error=exc.strerror or str(exc))
        walk_errors.append(
            FileOutcome(path=str(exc.filename), reason="ERROR", detected_type="DIRECTORY", detail=str(exc))
        )

    for dirpath, dirs, files in os.walk(root, onerror=on_error):
        yield from walk_errors
        walk_errors.clear()

        current = Path(dirpath)

        kept = []
        for name in sorted(dirs):
            if not config.process_hidden and is_hidden_name(name):
                continue
            if (current / name) in excluded:
                continue
            kept.append(name)
        dirs[:] = kept

        for name in sorted(files):
            if not config.process_hidden and is_hidden_name(name):
                continue
            path = current / name
            if path.suffix.lower() not in selected:
                continue
            detected = detect_type(path)
            if detected is None:
                continue

            try:
                st = path.stat()
            except OSError as exc:
                log.error("failed to stat file", path=str(path), error=str(exc))
                yield FileOutcome(path=str(path), reason="ERROR", detected_type=detected, detail=str(exc))
                continue

            yield MediaFile(path=path, detected_type=detected, size=st.st_size)

    # onerror for the last directories fires after their parent's batch was yielded.
    yield from walk_errors


def collect_media_files(config: ScanConfig, log: EventLogger) -> list[MediaFile | FileOutcome]:
    # Materialised up front: files relocated during the run must not be walked again.
    return list(iter_media_files(config, log))

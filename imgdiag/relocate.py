from __future__ import annotations

import itertools
import os
import shutil
from pathlib import Path
from typing import AbstractSet

_NOTHING: frozenset[Path] = frozenset()


def _taken(candidate: Path, planned: AbstractSet[Path]) -> bool:
    return candidate in planned or os.path.lexists(candidate)


def quarantine_destination(path: Path, move_dir: Path, planned: AbstractSet[Path] = _NOTHING) -> Path:
    """``move_dir/name``, then ``name.1``, ``name.2``, ... on collision."""
    base = move_dir / path.name
    candidate = base
    for i in itertools.count(1):
        if not _taken(candidate, planned):
            break
        candidate = base.with_name(f"{base.name}.{i}")
    return candidate


def organized_destination(path: Path, dest_dir: Path, planned: AbstractSet[Path] = _NOTHING) -> Path:
    """``dest_dir/name``, then ``stem_1.ext``, ``stem_2.ext``, ... on collision."""
    candidate = dest_dir / path.name
    for i in itertools.count(1):
        if not _taken(candidate, planned):
            break
        candidate = dest_dir / f"{path.stem}_{i}{path.suffix}"
    return candidate


def move_bad_file(path: Path, move_dir: Path, *, dry_run: bool = False, planned: set[Path] | None = None) -> Path:
    """Move ``path`` into ``move_dir`` without overwriting anything.

    In dry-run mode nothing moves; passing ``planned`` reserves the returned
    name so later files in the same run see it as taken.
    """
    if dry_run:
        dest = quarantine_destination(path, move_dir, planned or _NOTHING)
        if planned is not None:
            planned.add(dest)
        return dest

    dest = quarantine_destination(path, move_dir)
    shutil.move(str(path), str(dest))
    return dest


def place_file(
    path: Path,
    dest_dir: Path,
    *,
    copy: bool = False,
    dry_run: bool = False,
    planned: set[Path] | None = None,
) -> Path:
    """Move (or copy) ``path`` into ``dest_dir`` without overwriting anything.

    Returns the final location; a file already inside ``dest_dir`` is returned as is.
    """
    if path.parent == dest_dir:
        return path

    if dry_run:
        dest = organized_destination(path, dest_dir, planned or _NOTHING)
        if planned is not None:
            planned.add(dest)
        return dest

    dest_dir.mkdir(parents=True, exist_ok=True)
    dest = organized_destination(path, dest_dir)
    if copy:
        shutil.copy2(path, dest)
    else:
        shutil.move(str(path), str(dest))
    return dest

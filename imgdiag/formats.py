from __future__ import annotations

from pathlib import Path

from PIL import Image
from pillow_heif import register_heif_opener

from imgdiag.config import SUPPORTED_EXTENSIONS

register_heif_opener()

# Container names Pillow may report for each detected type.
ACCEPTED_FORMATS = {
    "JPEG": {"JPEG", "MPO"},
    "TIFF": {"TIFF"},
    "PNG": {"PNG"},
    "HEIC": {"HEIF", "AVIF"},
}


class ParseFailure(Exception):
    def __init__(self, detected_type: str, detail: str) -> None:
        super().__init__(f"{detected_type}: {detail}")
        self.detected_type = detected_type
        self.detail = detail


def detect_type(path: Path) -> str | None:
    return SUPPORTED_EXTENSIONS.get(path.suffix.lower())


def parse_extensions(value: str) -> list[str]:
    """Normalise a comma separated extension filter (``jpg, .PNG`` -> ``[".jpg", ".png"]``)."""
    selected: list[str] = []
    unknown: list[str] = []
    for item in value.split(","):
        item = item.strip().lower()
        if not item:
            continue
        ext = item if item.startswith(".") else f".{item}"
        if ext not in SUPPORTED_EXTENSIONS:
            unknown.append(item)
        elif ext not in selected:
            selected.append(ext)

    if unknown:
        raise ValueError(f"unsupported extension(s): {','.join(unknown)}")
    return selected


def check_file(path: Path, detected_type: str, *, decode: bool = True) -> str:
    """Parse ``path`` with the library for its type and return the container format.

    Raises ParseFailure when the file does not parse as ``detected_type``.
    Filesystem errors unrelated to the content propagate unchanged.
    """
    try:
        with Image.open(path) as img:
            container = img.format or ""
            img.verify()

        if container not in ACCEPTED_FORMATS[detected_type]:
            raise ParseFailure(detected_type, f"content is {container or 'unknown'}, not {detected_type}")

        if decode:
            # verify() leaves the image unusable; a truncated body only shows up on load().
            with Image.open(path) as img:
                img.load()
    except ParseFailure:
        raise
    except (FileNotFoundError, IsADirectoryError, PermissionError):
        raise
    except Image.DecompressionBombError as exc:
        # Oversized is not corrupt; report it without quarantining the file.
        raise OSError(f"refusing to parse oversized image: {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        raise ParseFailure(detected_type, f"{type(exc).__name__}: {exc}") from exc

    return container

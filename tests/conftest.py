from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image
from pillow_heif import register_heif_opener

from imgdiag.log import EventLogger

register_heif_opener()


def _save(
    path: Path, fmt: str, *, exif: dict[int, str] | None = None, size=(32, 24), noisy: bool = False
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if noisy:
        img = Image.effect_noise(size, 64).convert("RGB")
    else:
        img = Image.new("RGB", size, (200, 40, 40))
    kwargs = {}
    if exif:
        data = Image.Exif()
        for tag, value in exif.items():
            data[int(tag)] = value
        kwargs["exif"] = data
    img.save(path, fmt, **kwargs)
    return path


@pytest.fixture
def make_jpeg() -> Callable[..., Path]:
    return lambda path, **kw: _save(path, "JPEG", **kw)


@pytest.fixture
def make_png() -> Callable[..., Path]:
    return lambda path, **kw: _save(path, "PNG", **kw)


@pytest.fixture
def make_tiff() -> Callable[..., Path]:
    return lambda path, **kw: _save(path, "TIFF", **kw)


@pytest.fixture
def make_heic() -> Callable[..., Path]:
    return lambda path, **kw: _save(path, "HEIF", **{"size": (64, 64), **kw})


@pytest.fixture
def make_garbage() -> Callable[[Path], Path]:
    def _make(path: Path, data: bytes = b"definitely not an image file") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def truncate() -> Callable[[Path], Path]:
    def _cut(path: Path) -> Path:
        data = path.read_bytes()
        path.write_bytes(data[: len(data) // 2])
        return path

    return _cut


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def event_log(log_stream: io.StringIO) -> EventLogger:
    return EventLogger(stream=log_stream)

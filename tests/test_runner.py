from __future__ import annotations

import json
import shutil
from pathlib import Path

from PIL import ExifTags, Image

from imgdiag.config import ScanConfig
from imgdiag.runner import EXIT_DEGRADED, EXIT_ERROR, EXIT_OK, run_sync


def _populate(root: Path, make_jpeg, make_png, make_garbage) -> None:
    make_jpeg(
        root / "trip" / "IMG_0001.jpg",
        exif={ExifTags.Base.Make: "Apple", ExifTags.Base.Model: "iPhone 12", ExifTags.Base.DateTime: "2021:05:06 07:08:09"},
    )
    make_png(root / "trip" / "screenshot.png")
    make_garbage(root / "trip" / "broken.jpg")
    make_garbage(root / "tiny.png", b"\x89P")


def test_clean_tree_exits_ok(tmp_path: Path, make_jpeg, event_log, log_stream) -> None:
    make_jpeg(tmp_path / "a.jpg")

    assert run_sync(ScanConfig(scan_path=tmp_path), event_log) == EXIT_OK
    output = log_stream.getvalue()
    assert "Scanning..." in output
    assert "OK: 1" in output
    assert "Done!" in output


def test_bad_files_are_reported_and_left(tmp_path: Path, make_jpeg, make_png, make_garbage, event_log, log_stream) -> None:
    _populate(tmp_path, make_jpeg, make_png, make_garbage)

    assert run_sync(ScanConfig(scan_path=tmp_path), event_log) == EXIT_DEGRADED
    output = log_stream.getvalue()
    assert "failed to parse" in output
    assert "file too small" in output
    assert "PARSE_FAIL: 1" in output
    assert "TOO_SMALL: 1" in output
    assert (tmp_path / "trip" / "broken.jpg").exists()


def test_bad_files_are_moved(tmp_path: Path, make_jpeg, make_png, make_garbage, event_log) -> None:
    scan = tmp_path / "scan"
    bad = tmp_path / "bad"
    bad.mkdir()
    _populate(scan, make_jpeg, make_png, make_garbage)
    (bad / "broken.jpg").write_bytes(b"earlier")

    code = run_sync(ScanConfig(scan_path=scan, move_path=bad), event_log)

    assert code == EXIT_DEGRADED
    assert sorted(p.name for p in bad.iterdir()) == ["broken.jpg", "broken.jpg.1", "tiny.png"]
    assert (bad / "broken.jpg").read_bytes() == b"earlier"
    assert (scan / "trip" / "IMG_0001.jpg").exists()


def test_organize_valid_files(tmp_path: Path, make_jpeg, make_png, make_garbage, event_log) -> None:
    scan = tmp_path / "scan"
    out = tmp_path / "library"
    bad = tmp_path / "bad"
    out.mkdir()
    bad.mkdir()
    _populate(scan, make_jpeg, make_png, make_garbage)
    report_path = tmp_path / "report.json"
    record_path = tmp_path / "record.jsonl"

    code = run_sync(
        ScanConfig(
            scan_path=scan,
            move_path=bad,
            organize_path=out,
            record_path=record_path,
            report_path=report_path,
        ),
        event_log,
    )

    assert code == EXIT_DEGRADED
    assert (out / "2021" / "2021-05" / "Apple iPhone 12" / "IMG_0001.jpg").exists()
    organized_png = list(out.rglob("screenshot.png"))
    assert len(organized_png) == 1
    assert organized_png[0].parent.name == "Unknown Device"
    assert not (scan / "trip" / "IMG_0001.jpg").exists()

    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["files_total"] == 4
    assert report["organized"] == 2
    assert report["moved_bad"] == 2
    assert report["by_type"] == {"JPEG": 2, "PNG": 2}
    assert report["exit_code"] == EXIT_DEGRADED

    records = [json.loads(line) for line in record_path.read_text(encoding="utf-8").splitlines()]
    assert sorted(r["reason"] for r in records) == ["ORGANIZED", "ORGANIZED", "PARSE_FAIL", "TOO_SMALL"]


def test_organize_copy_keeps_originals(tmp_path: Path, make_jpeg, event_log) -> None:
    scan = tmp_path / "scan"
    out = tmp_path / "library"
    out.mkdir()
    make_jpeg(scan / "a.jpg", exif={ExifTags.Base.DateTime: "2010:01:02 03:04:05"})

    assert run_sync(ScanConfig(scan_path=scan, organize_path=out, copy_organized=True), event_log) == EXIT_OK
    assert (scan / "a.jpg").exists()
    assert (out / "2010" / "2010-01" / "Unknown Device" / "a.jpg").exists()


def test_dry_run_touches_nothing(tmp_path: Path, make_jpeg, make_png, make_garbage, event_log, log_stream) -> None:
    scan = tmp_path / "scan"
    out = tmp_path / "library"
    bad = tmp_path / "bad"
    out.mkdir()
    bad.mkdir()
    _populate(scan, make_jpeg, make_png, make_garbage)
    before = sorted(p.relative_to(scan) for p in scan.rglob("*"))

    run_sync(ScanConfig(scan_path=scan, move_path=bad, organize_path=out, dry_run=True), event_log)

    assert sorted(p.relative_to(scan) for p in scan.rglob("*")) == before
    assert list(out.iterdir()) == []
    assert list(bad.iterdir()) == []
    assert "dry_run=True" in log_stream.getvalue()


def test_organize_in_place(tmp_path: Path, make_jpeg, event_log) -> None:
    make_jpeg(tmp_path / "a.jpg", exif={ExifTags.Base.DateTime: "2015:06:07 08:09:10"})
    target = tmp_path / "2015" / "2015-06" / "Unknown Device"
    make_jpeg(target / "b.jpg", exif={ExifTags.Base.DateTime: "2015:06:07 08:09:10"})

    assert run_sync(ScanConfig(scan_path=tmp_path, organize_path=tmp_path), event_log) == EXIT_OK
    assert sorted(p.name for p in target.iterdir()) == ["a.jpg", "b.jpg"]


def test_missing_scan_path(tmp_path: Path, event_log, log_stream) -> None:
    assert run_sync(ScanConfig(scan_path=tmp_path / "nope"), event_log) == EXIT_ERROR
    assert "scan path error" in log_stream.getvalue()


def test_scan_path_must_be_directory(tmp_path: Path, event_log, log_stream) -> None:
    file_path = tmp_path / "file.jpg"
    file_path.write_bytes(b"x")

    assert run_sync(ScanConfig(scan_path=file_path), event_log) == EXIT_ERROR
    assert "scan path is not a directory" in log_stream.getvalue()


def test_move_path_equal_to_scan_path(tmp_path: Path, event_log, log_stream) -> None:
    assert run_sync(ScanConfig(scan_path=tmp_path, move_path=tmp_path), event_log) == EXIT_ERROR
    assert "move path must differ" in log_stream.getvalue()


def test_bad_layout(tmp_path: Path, event_log, log_stream) -> None:
    out = tmp_path / "out"
    out.mkdir()
    config = ScanConfig(scan_path=tmp_path, organize_path=out, layout="{camera}")

    assert run_sync(config, event_log) == EXIT_ERROR
    assert "layout error" in log_stream.getvalue()


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_unreadable_entry_counts_as_error(tmp_path: Path, make_jpeg, event_log, log_stream) -> None:
    scan = tmp_path / "scan"
    make_jpeg(scan / "a.jpg")
    (scan / "link.jpg").symlink_to(scan / "missing.jpg")

    assert run_sync(ScanConfig(scan_path=scan), event_log) == EXIT_DEGRADED
    output = log_stream.getvalue()
    assert "failed to stat file" in output
    assert "ERROR: 1" in output
    assert "OK: 1" in output


def test_failed_move_is_logged_and_scan_continues(
    tmp_path: Path, make_jpeg, make_garbage, event_log, monkeypatch
) -> None:
    scan = tmp_path / "scan"
    bad = tmp_path / "bad"
    bad.mkdir()
    make_garbage(scan / "a.jpg")
    make_garbage(scan / "b.jpg")
    make_jpeg(scan / "c.jpg")
    record_path = tmp_path / "record.jsonl"

    real_move = shutil.move

    def flaky_move(src, dst):
        if Path(src).name == "a.jpg":
            raise PermissionError(13, "Permission denied", dst)
        return real_move(src, dst)

    monkeypatch.setattr("imgdiag.relocate.shutil.move", flaky_move)

    code = run_sync(ScanConfig(scan_path=scan, move_path=bad, record_path=record_path), event_log)

    assert code == EXIT_DEGRADED
    by_name = {Path(r["path"]).name: r for r in _records(record_path)}
    assert by_name["a.jpg"]["reason"] == "ERROR"
    assert "PermissionError" in by_name["a.jpg"]["detail"]
    assert by_name["b.jpg"]["reason"] == "PARSE_FAIL"
    assert by_name["c.jpg"]["reason"] == "OK"
    assert (scan / "a.jpg").exists()
    assert (bad / "b.jpg").exists()


def test_oversized_image_is_error_not_quarantined(
    tmp_path: Path, make_png, event_log, log_stream, monkeypatch
) -> None:
    scan = tmp_path / "scan"
    bad = tmp_path / "bad"
    bad.mkdir()
    make_png(scan / "panorama.png")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    assert run_sync(ScanConfig(scan_path=scan, move_path=bad), event_log) == EXIT_DEGRADED
    assert "ERROR: 1" in log_stream.getvalue()
    assert "PARSE_FAIL: 0" in log_stream.getvalue()
    assert (scan / "panorama.png").exists()
    assert list(bad.iterdir()) == []


def test_dry_run_destinations_match_real_run(tmp_path: Path, make_garbage, event_log) -> None:
    scan = tmp_path / "scan"
    bad = tmp_path / "bad"
    bad.mkdir()
    make_garbage(scan / "x" / "a.jpg")
    make_garbage(scan / "y" / "a.jpg")
    record_path = tmp_path / "record.jsonl"

    run_sync(ScanConfig(scan_path=scan, move_path=bad, record_path=record_path, dry_run=True), event_log)

    planned = [Path(r["moved_to"]).name for r in _records(record_path)]
    assert planned == ["a.jpg", "a.jpg.1"]
    assert list(bad.iterdir()) == []


def test_heif_files_are_checked_and_organized(tmp_path: Path, make_heic, event_log) -> None:
    scan = tmp_path / "scan"
    out = tmp_path / "library"
    out.mkdir()
    make_heic(scan / "IMG_0042.heif")
    report_path = tmp_path / "report.json"

    assert run_sync(ScanConfig(scan_path=scan, organize_path=out, report_path=report_path), event_log) == EXIT_OK

    assert len(list(out.rglob("IMG_0042.heif"))) == 1
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["by_type"] == {"HEIC": 1}
    assert report["counts"]["ORGANIZED"] == 1

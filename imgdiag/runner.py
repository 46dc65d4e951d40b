from __future__ import annotations

import dataclasses
import json
import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from imgdiag.config import MIN_FILE_SIZE, ScanConfig
from imgdiag.formats import ParseFailure, check_file
from imgdiag.jsonl_logger import JsonlLogger
from imgdiag.log import EventLogger
from imgdiag.metadata import read_metadata
from imgdiag.models import FileOutcome, MediaFile
from imgdiag.organize import target_dir, validate_layout
from imgdiag.paths import ScanSetupError, resolve_directory
from imgdiag.relocate import move_bad_file, place_file
from imgdiag.time_utils import timestamp_str
from imgdiag.walker import collect_media_files

EXIT_OK = 0
EXIT_DEGRADED = 1
EXIT_ERROR = 2

OUTCOMES = ["OK", "ORGANIZED", "TOO_SMALL", "PARSE_FAIL", "ERROR"]
INVALID_OUTCOMES = ("TOO_SMALL", "PARSE_FAIL")


@dataclass
class RunReport:
    run_ts: str
    scan_path: str
    dry_run: bool
    files_total: int
    counts: Counter
    by_type: Counter
    moved_bad: int = 0
    organized: int = 0
    duration_seconds: float = 0.0

    @property
    def invalid_count(self) -> int:
        return sum(int(self.counts.get(key, 0)) for key in INVALID_OUTCOMES)

    @property
    def error_count(self) -> int:
        return int(self.counts.get("ERROR", 0))

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_ts": self.run_ts,
            "scan_path": self.scan_path,
            "dry_run": self.dry_run,
            "files_total": self.files_total,
            "counts": dict(self.counts),
            "by_type": dict(sorted(self.by_type.items())),
            "moved_bad": self.moved_bad,
            "organized": self.organized,
            "duration_seconds": self.duration_seconds,
        }


def prepare_config(config: ScanConfig) -> ScanConfig:
    """Resolve and check every directory up front; problems raise ScanSetupError."""
    scan_path = resolve_directory("scan path", config.scan_path)

    move_path = None
    if config.move_path is not None:
        move_path = resolve_directory("move path", config.move_path)
        if move_path == scan_path:
            raise ScanSetupError("move path must differ from scan path")

    organize_path = None
    if config.organize_path is not None:
        organize_path = resolve_directory("organize path", config.organize_path)
        if organize_path == move_path:
            raise ScanSetupError("organize path must differ from move path")
        try:
            validate_layout(config.layout)
        except ValueError as exc:
            raise ScanSetupError(f"layout error: {exc}") from exc

    return dataclasses.replace(config, scan_path=scan_path, move_path=move_path, organize_path=organize_path)


class Scanner:
    def __init__(self, config: ScanConfig, log: EventLogger) -> None:
        self.config = config
        self.log = log
        self.record = JsonlLogger(config.record_path) if config.record_path else None
        # Destinations promised to earlier files of a dry run.
        self.planned: set[Path] = set()

    def run(self) -> RunReport:
        started = time.monotonic()
        report = RunReport(
            run_ts=timestamp_str(),
            scan_path=str(self.config.scan_path),
            dry_run=self.config.dry_run,
            files_total=0,
            counts=Counter({key: 0 for key in OUTCOMES}),
            by_type=Counter(),
        )

        for item in collect_media_files(self.config, self.log):
            if isinstance(item, FileOutcome):
                # Already logged by the walker.
                outcome = item
            else:
                outcome = self._process_safely(item)

            report.counts[outcome.reason] += 1
            if outcome.detected_type != "DIRECTORY":
                report.files_total += 1
                report.by_type[outcome.detected_type] += 1
            if outcome.moved_to and outcome.reason in INVALID_OUTCOMES:
                report.moved_bad += 1
            if outcome.reason == "ORGANIZED":
                report.organized += 1

            if self.record is not None:
                self.record.append({"time": timestamp_str(), **dataclasses.asdict(outcome)})

        report.duration_seconds = round(time.monotonic() - started, 3)
        return report

    def _process_safely(self, media: MediaFile) -> FileOutcome:
        try:
            return self._process(media)
        except OSError as exc:
            detail = f"{type(exc).__name__}: {exc}"
            self.log.error("failed to process file", path=str(media.path), error=detail)
            return FileOutcome(path=str(media.path), reason="ERROR", detected_type=media.detected_type, detail=detail)

    def _process(self, media: MediaFile) -> FileOutcome:
        if media.size < MIN_FILE_SIZE:
            self.log.error("file too small", path=str(media.path), size=media.size)
            return self._invalid(media, "TOO_SMALL", f"size={media.size}")

        try:
            check_file(media.path, media.detected_type, decode=self.config.decode)
        except ParseFailure as exc:
            self.log.error("failed to parse", path=str(media.path), type=media.detected_type, error=exc.detail)
            return self._invalid(media, "PARSE_FAIL", exc.detail)

        if self.config.organize_path is None:
            return FileOutcome(path=str(media.path), reason="OK", detected_type=media.detected_type)
        return self._organize(media)

    def _invalid(self, media: MediaFile, reason: str, detail: str) -> FileOutcome:
        outcome = FileOutcome(path=str(media.path), reason=reason, detected_type=media.detected_type, detail=detail)
        if self.config.move_path is None:
            return outcome

        dest = move_bad_file(media.path, self.config.move_path, dry_run=self.config.dry_run, planned=self.planned)
        self.log.info("moved bad file", path=str(media.path), to=str(dest), dry_run=self.config.dry_run or None)
        outcome.moved_to = str(dest)
        return outcome

    def _organize(self, media: MediaFile) -> FileOutcome:
        info = read_metadata(media.path, media.detected_type)
        dest_dir = target_dir(self.config.organize_path, info, self.config.layout)
        dest = place_file(
            media.path,
            dest_dir,
            copy=self.config.copy_organized,
            dry_run=self.config.dry_run,
            planned=self.planned,
        )

        if dest == media.path:
            return FileOutcome(path=str(media.path), reason="OK", detected_type=media.detected_type)
        outcome = FileOutcome(path=str(media.path), reason="ORGANIZED", detected_type=media.detected_type)

        self.log.info(
            "organized file",
            path=str(media.path),
            to=str(dest),
            date_source=info.date_source,
            device=info.device,
            copy=self.config.copy_organized or None,
            dry_run=self.config.dry_run or None,
        )
        outcome.moved_to = str(dest)
        return outcome


def _build_summary(report: RunReport) -> list[str]:
    lines = [
        f"--- Scan Summary [{report.run_ts}] ---",
        f"scan_path: {report.scan_path}",
        f"dry_run: {report.dry_run}",
        f"files_total: {report.files_total}",
    ]
    for key in OUTCOMES:
        lines.append(f"{key}: {report.counts[key]}")
    lines.append(f"moved_bad: {report.moved_bad}")
    lines.append(f"organized: {report.organized}")

    lines.append("by_type:")
    if report.by_type:
        for detected_type in sorted(report.by_type):
            lines.append(f"  {detected_type}: {report.by_type[detected_type]}")
    else:
        lines.append("  (no files)")

    lines.append(f"duration_seconds: {report.duration_seconds}")
    return lines


def _write_report(path: Path, report: RunReport, exit_code: int) -> None:
    payload = {**report.as_dict(), "exit_code": exit_code}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def evaluate_exit_code(report: RunReport) -> int:
    """Exit code policy.

    - EXIT_OK: every file parsed.
    - EXIT_DEGRADED: the scan completed but found invalid files or per-file errors.
    """
    if report.invalid_count > 0 or report.error_count > 0:
        return EXIT_DEGRADED
    return EXIT_OK


def _announce(config: ScanConfig, log: EventLogger) -> None:
    if config.move_path is not None:
        log.info("Will move bad files", path=str(config.move_path))
    if config.organize_path is not None:
        log.info(
            "Will organize valid files",
            path=str(config.organize_path),
            layout=config.layout,
            copy=config.copy_organized or None,
        )
    if config.process_hidden:
        log.info("Will process hidden files and directories")
    if config.extensions:
        log.info("Filtering extensions", extensions=",".join(config.extensions))
    if config.dry_run:
        log.info("Dry run: no files will be moved")


def run_sync(config: ScanConfig, log: EventLogger) -> int:
    try:
        config = prepare_config(config)
        _announce(config, log)

        log.info("Scanning...", path=str(config.scan_path))
        report = Scanner(config, log).run()
        exit_code = evaluate_exit_code(report)

        if log.json_output:
            log.info("summary", **report.as_dict())
        else:
            log.echo("\n".join(_build_summary(report)))

        if config.report_path is not None:
            try:
                _write_report(config.report_path, report, exit_code)
            except OSError as exc:
                log.warning("failed to write report", path=str(config.report_path), error=str(exc))

        log.info("Done!")
        return exit_code
    except ScanSetupError as exc:
        log.error("fatal error", error=str(exc))
        return EXIT_ERROR
    except Exception as exc:  # noqa: BLE001
        log.error("fatal error", error=f"{type(exc).__name__}: {exc}")
        return EXIT_ERROR

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from imgdiag.config import DEFAULT_LAYOUT, SUPPORTED_EXTENSIONS, ScanConfig
from imgdiag.formats import parse_extensions
from imgdiag.log import EventLogger
from imgdiag.organize import LAYOUT_FIELDS
from imgdiag.runner import EXIT_ERROR, run_sync

app = typer.Typer(
    add_completion=False,
    help="imgdiag: parse images in a directory to diagnose whether they are corrupted",
)


@app.callback()
def main_callback() -> None:
    # Runs before sub-command options are parsed, so .env values reach envvar= fallbacks.
    load_dotenv()


@app.command()
def scan(
    path: Path = typer.Option(..., "--path", envvar="IMGDIAG_PATH", help="REQUIRED. Path to directory to scan"),
    move: Optional[Path] = typer.Option(None, "--move", envvar="IMGDIAG_MOVE", help="Move bad files to this directory"),
    organize: Optional[Path] = typer.Option(
        None,
        "--organize",
        envvar="IMGDIAG_ORGANIZE",
        help="Reorganize valid files into this directory by capture date and device",
    ),
    layout: str = typer.Option(
        DEFAULT_LAYOUT,
        "--layout",
        envvar="IMGDIAG_LAYOUT",
        help=f"Folder template for --organize. Fields: {', '.join(LAYOUT_FIELDS)}",
    ),
    ext: str = typer.Option("", "--ext", envvar="IMGDIAG_EXT", help='Only check these extensions, e.g. "jpg,png"'),
    hidden: bool = typer.Option(False, "--hidden", help="Whether to process hidden files and directories"),
    json_logs: bool = typer.Option(
        False, "--json", envvar="IMGDIAG_JSON", help="Whether to log in JSON instead of pretty print"
    ),
    copy: bool = typer.Option(False, "--copy", help="Copy valid files into --organize instead of moving them"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be moved without touching files"),
    decode: bool = typer.Option(True, "--decode/--no-decode", help="Fully decode pixel data, not only headers"),
    record: Optional[Path] = typer.Option(None, "--record", help="Append one JSON line per checked file"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write the run summary as JSON"),
) -> None:
    log = EventLogger(json_output=json_logs)

    try:
        extensions = parse_extensions(ext)
    except ValueError as exc:
        log.error("fatal error", error=str(exc))
        raise typer.Exit(code=EXIT_ERROR)

    config = ScanConfig(
        scan_path=path,
        move_path=move,
        organize_path=organize,
        layout=layout,
        extensions=extensions,
        process_hidden=hidden,
        copy_organized=copy,
        decode=decode,
        record_path=record,
        report_path=report,
        dry_run=dry_run,
    )
    code = run_sync(config, log)
    raise typer.Exit(code=code)


@app.command("formats")
def list_formats() -> None:
    by_type: dict[str, list[str]] = {}
    for extension, detected_type in SUPPORTED_EXTENSIONS.items():
        by_type.setdefault(detected_type, []).append(extension)
    for detected_type, extensions in by_type.items():
        typer.echo(f"{detected_type}: {','.join(extensions)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()

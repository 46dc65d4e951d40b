from __future__ import annotations

import json
import logging
import sys
from typing import Any, TextIO

from imgdiag.time_utils import clock_str, timestamp_str

LOGGER_NAME = "imgdiag"

LEVEL_TAGS = {"DEBUG": "DBG", "INFO": "INF", "WARNING": "WRN", "ERROR": "ERR"}


def _pretty(value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or '"' in text:
        return json.dumps(text, ensure_ascii=False)
    return text


class ConsoleFormatter(logging.Formatter):
    """``15:04:05 INF message key=value`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = getattr(record, "fields", {})
        parts = [clock_str(), LEVEL_TAGS.get(record.levelname, record.levelname[:3]), record.getMessage()]
        parts.extend(f"{key}={_pretty(value)}" for key, value in fields.items())
        return " ".join(parts)


class JsonFormatter(logging.Formatter):
    """One JSON object per line for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = getattr(record, "fields", {})
        payload = {
            "level": record.levelname.lower(),
            "time": timestamp_str(),
            **fields,
            "message": record.getMessage(),
        }
        return json.dumps(payload, ensure_ascii=False, default=str)


class EventLogger:
    """Structured events on top of the ``imgdiag`` logger.

    Keyword fields travel on the record and are rendered by the installed formatter.
    """

    def __init__(self, *, json_output: bool = False, stream: TextIO | None = None) -> None:
        self.json_output = json_output
        self.stream = stream if stream is not None else sys.stdout

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JsonFormatter() if json_output else ConsoleFormatter())
        self.logger.addHandler(handler)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def echo(self, text: str) -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        fields = {key: value for key, value in fields.items() if value is not None}
        self.logger.log(level, message, extra={"fields": fields})

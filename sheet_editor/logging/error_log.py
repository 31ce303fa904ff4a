from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Contained-error buffering.

- JSON Lines fixed schema (no extra keys)
- One ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC) per session, created lazily
- Records are buffered and written on ``flush()``; the editor is single
  threaded so no locking is needed
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "report_contained_error",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            logs_dir = self._logs_dir or LOGS_DIR
            logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the session file.

        Returns the file path, or None when there was nothing to write (no
        empty log files are created).
        """
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp


def report_contained_error(
    logger: logging.Logger,
    buffer: ErrorLogBuffer | None,
    *,
    component: str,
    source: str,
    error_type: str,
    error: BaseException,
    message: str,
) -> None:
    """Log an error that was caught at its own boundary and keep a record of it."""
    logger.error(f"{message}: {error}")
    if buffer is not None:
        buffer.append(ErrorRecord.create(component, source, error_type, str(error)))

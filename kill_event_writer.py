"""
Kill Event Writer
=================

Appends kill events to a per-session file:

    logs/kill-events_<yyMMdd-HHmmss>.log

Each event is written as an indented JSON object. Records are separated by
"," and a line break; the file has no enclosing array, so wrap it in [ ]
before feeding it to a JSON reader.

The file is opened in append mode for every record and closed right away so
other programs can read it while a scan is running.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from error_handling import ErrorHandler, PersistenceError, with_error_handling, retry_on_error
from kill_event_models import KillEvent

logger = logging.getLogger("sckm.writer")

FILE_NAME_PATTERN = "kill-events_{suffix}.log"


class KillEventWriter:
    """Persistence sink for kill events"""

    def __init__(self, log_dir: Path = Path("logs"), error_handler: Optional[ErrorHandler] = None):
        self.log_dir = Path(log_dir)
        self.error_handler = error_handler or ErrorHandler()

    def path_for(self, suffix: str) -> Path:
        return self.log_dir / FILE_NAME_PATTERN.format(suffix=suffix)

    @with_error_handling("KillEventWriter", "append", default_return=False)
    def append(self, event: KillEvent, suffix: str) -> bool:
        """
        Append one event to the session file

        Args:
            event: Event to persist
            suffix: Scan start time formatted as yyMMdd-HHmmss

        Returns:
            True if written; False if the write failed (failure is logged)
        """
        path = self.path_for(suffix)
        record = json.dumps(event.to_dict(), indent=2, ensure_ascii=False)
        try:
            self._append_record(path, record)
        except OSError as e:
            raise PersistenceError(
                f"Failed to write kill event to {path}: {e}",
                context={"path": str(path), "error": str(e)}
            ) from e
        logger.info("Kill event written to file: %s", path.resolve())
        return True

    @retry_on_error(max_attempts=3, delay_seconds=0.05, exceptions=(OSError,))
    def _append_record(self, path: Path, record: str):
        path.parent.mkdir(parents=True, exist_ok=True)
        has_records = path.exists() and path.stat().st_size > 0
        # Separator and record in a single write
        chunk = "," + os.linesep + record if has_records else record
        with path.open("a", encoding="utf-8", newline="") as f:
            f.write(chunk)

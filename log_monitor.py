"""
Log Monitor - Scan loop for game.log
====================================

- LogFileReader: reads the whole log file, cancellable between lines
- LogMonitor: background scan loop for one scan session

Every tick re-reads the log file from the beginning. Already known events are
dropped by the session, so a file that grows, is rewritten or is rotated
never produces duplicates.

The worker never touches widgets. It posts message objects to an outbox
queue, tagged with the monitor's session id; the presenter drains the queue
on the UI thread:

    ScanStateChanged  state transitions (RUNNING, FAILED)
    ScanUpdate        new events of one tick plus counters
    ScanReset         evaluation was reset, display must be cleared
    AlertRaised       alert for the user (file read failure)

After stop() the worker posts nothing, writes nothing and leaves the session
untouched.
"""

# ============================================================================
# IMPORTS
# ============================================================================

import logging
import queue
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple, Dict, Any, TYPE_CHECKING

from error_handling import (
    ErrorHandler,
    ErrorContext,
    ErrorSeverity,
    KillMonitorError,
    LogFileError,
    ScanStateError,
)
from kill_event_models import KillEvent
from kill_event_parser import KillEventParser
from kill_event_writer import KillEventWriter
from model import ScanSession

if TYPE_CHECKING:
    from settings_data import SettingsData

logger = logging.getLogger("sckm.monitor")

SUFFIX_FORMAT = "%y%m%d-%H%M%S"


# ============================================================================
# STATE AND MESSAGES
# ============================================================================

class ScanState(Enum):
    """Lifecycle of one scan session (terminal states are not resumable)"""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ScanUpdate:
    session_id: str
    events: Tuple[KillEvent, ...]  # newest first
    kill_count: int
    death_count: int


@dataclass(frozen=True)
class ScanReset:
    session_id: str


@dataclass(frozen=True)
class ScanStateChanged:
    session_id: str
    state: ScanState


@dataclass(frozen=True)
class AlertRaised:
    session_id: str
    severity: ErrorSeverity
    header: str
    message: str


# ============================================================================
# LOG FILE READER
# ============================================================================

class LogFileReader:
    """Reads the game log in one pass per tick"""

    def read_lines(self, path: Path, stop_event: threading.Event) -> Optional[List[str]]:
        """
        Read all lines of the log file from the beginning

        The file is opened read-only and closed before returning.

        Args:
            path: Log file
            stop_event: Checked between lines

        Returns:
            List of lines, or None if the read was cancelled

        Raises:
            LogFileError: If the file cannot be opened or read
        """
        lines: List[str] = []
        try:
            with Path(path).open("r", encoding="utf-8", errors="ignore") as f:
                for line in f:
                    if stop_event.is_set():
                        return None
                    lines.append(line)
        except OSError as e:
            raise LogFileError(
                f"Failed to read log file {path}: {e}",
                context={"path": str(path), "error": str(e)}
            ) from e
        return lines


# ============================================================================
# LOG MONITOR
# ============================================================================

class LogMonitor:
    """
    Scan loop for one scan session

    Settings are read once when the scan starts. Only show_all can change
    while running, through set_show_all().
    """

    def __init__(
        self,
        settings: 'SettingsData',
        outbox: queue.Queue,
        writer: Optional[KillEventWriter] = None,
        error_handler: Optional[ErrorHandler] = None,
        parser: Optional[KillEventParser] = None,
        reader: Optional[LogFileReader] = None
    ):
        """
        Initialize log monitor

        Args:
            settings: User settings (handle, channel paths, interval, flags)
            outbox: Queue the presenter drains on the UI thread
            writer: Persistence sink used when write_to_file is set
            error_handler: Central error handler (logging and history only)
            parser: Line parser
            reader: Log file reader
        """
        self.settings = settings
        self.outbox = outbox
        self.error_handler = error_handler or ErrorHandler()
        self.writer = writer or KillEventWriter(error_handler=self.error_handler)
        self.parser = parser or KillEventParser()
        self.reader = reader or LogFileReader()

        self.session_id = uuid.uuid4().hex
        self.session = ScanSession()

        # Snapshot taken at start()
        self.log_path: Optional[Path] = None
        self.handle = ""
        self.interval = 60
        self.show_all = False
        self.killer_mode_active = False
        self.write_to_file = False
        self.scan_start_time: Optional[datetime] = None

        self._state = ScanState.IDLE
        self._state_lock = threading.Lock()
        self._show_all_request: Optional[bool] = None
        self._request_lock = threading.Lock()

        # Control events
        self.stop_event = threading.Event()
        self.wake_event = threading.Event()

        # Monitoring thread
        self.monitor_thread: Optional[threading.Thread] = None

        self.ticks = 0

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def state(self) -> ScanState:
        with self._state_lock:
            return self._state

    @property
    def file_suffix(self) -> str:
        """Kill event file suffix, scan start time as yyMMdd-HHmmss"""
        if self.scan_start_time is None:
            return ""
        return self.scan_start_time.strftime(SUFFIX_FORMAT)

    def get_status(self) -> Dict[str, Any]:
        counters = self.session.get_counters()
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "log_path": str(self.log_path) if self.log_path else "",
            "ticks": self.ticks,
            "kill_count": counters["kill_count"],
            "death_count": counters["death_count"],
            **self.parser.get_stats(),
        }

    # ========================================================================
    # MONITORING OPERATIONS
    # ========================================================================

    def start(self):
        """
        Start scanning in a background thread

        Raises:
            ScanStateError: If this monitor is not IDLE
        """
        with self._state_lock:
            if self._state is not ScanState.IDLE:
                raise ScanStateError(
                    f"Cannot start scan in state {self._state.value}",
                    context={"session_id": self.session_id}
                )

            self.log_path = Path(self.settings.selected_path).expanduser()
            self.handle = self.settings.handle
            self.interval = max(1, int(self.settings.interval))
            self.show_all = self.settings.show_all
            self.killer_mode_active = self.settings.killer_mode_active
            self.write_to_file = self.settings.write_to_file
            self.scan_start_time = datetime.now().astimezone()

            self._state = ScanState.RUNNING

        self._post(ScanStateChanged(self.session_id, ScanState.RUNNING))

        self.monitor_thread = threading.Thread(
            target=self._monitor_loop,
            name=f"scan-{self.session_id[:8]}",
            daemon=True
        )
        self.monitor_thread.start()

        logger.info(
            "Scan started for %s on %s (interval %ss)",
            self.handle, self.log_path, self.interval
        )

    def stop(self):
        """Stop scanning; the running tick is discarded"""
        with self._state_lock:
            if self._state in (ScanState.IDLE, ScanState.RUNNING):
                self._state = ScanState.STOPPED
                stopped = True
            else:
                stopped = False

        self.stop_event.set()
        self.wake_event.set()

        if stopped:
            logger.info("Scan stopped")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread; True if it has finished"""
        if self.monitor_thread is None:
            return True
        self.monitor_thread.join(timeout=timeout)
        return not self.monitor_thread.is_alive()

    def set_show_all(self, value: bool):
        """Switch show_all; the worker resets the display and rescans at once"""
        with self._request_lock:
            self._show_all_request = bool(value)
        self.wake_event.set()

    # ========================================================================
    # WORKER
    # ========================================================================

    def _monitor_loop(self):
        """Main scan loop (runs in background thread)"""
        try:
            while not self.stop_event.is_set():
                self._apply_show_all_request()
                self._tick()
                self._wait()
        except LogFileError as e:
            self._fail(e)
        except Exception as e:
            logger.exception("Scan loop crashed")
            self._fail(KillMonitorError(
                f"Scan loop crashed: {e}",
                header="Scan failed",
                user_message="An error occurred while performing the desired action."
            ))

    def _tick(self):
        lines = self.reader.read_lines(self.log_path, self.stop_event)
        if lines is None:
            return

        events = []
        for line in lines:
            event = self.parser.parse_line(line)
            if event is not None:
                events.append(event)

        if self.stop_event.is_set():
            return

        inserted = self.session.ingest(events, self.handle, self.killer_mode_active)
        displayed = self.session.evaluate(self.handle, self.killer_mode_active, self.show_all)
        self.ticks += 1

        logger.debug(
            "Tick %d: %d lines, %d events, %d new, %d displayed",
            self.ticks, len(lines), len(events), len(inserted), len(displayed)
        )

        if displayed:
            counters = self.session.get_counters()
            self._post(ScanUpdate(
                session_id=self.session_id,
                events=tuple(displayed),
                kill_count=counters["kill_count"],
                death_count=counters["death_count"],
            ))

        if self.write_to_file:
            suffix = self.file_suffix
            for event in inserted:
                if self.stop_event.is_set():
                    break
                self.writer.append(event, suffix)

    def _wait(self):
        if self.wake_event.wait(self.interval):
            self.wake_event.clear()

    def _apply_show_all_request(self):
        with self._request_lock:
            request, self._show_all_request = self._show_all_request, None

        if request is None or self.stop_event.is_set():
            return

        self.show_all = request
        self.session.reset_evaluation()
        logger.info("Show all set to %s - display reset", request)
        self._post(ScanReset(self.session_id))

    def _fail(self, error: KillMonitorError):
        with self._state_lock:
            if self._state is not ScanState.RUNNING or self.stop_event.is_set():
                return
            self._state = ScanState.FAILED

        self.error_handler.handle_error(
            error,
            ErrorContext(
                operation="scan",
                component="LogMonitor",
                details={"session_id": self.session_id, "path": str(self.log_path)}
            ),
            notify_user=False
        )

        self.outbox.put(AlertRaised(
            session_id=self.session_id,
            severity=error.severity,
            header=error.header,
            message=error.user_message
        ))
        self.outbox.put(ScanStateChanged(self.session_id, ScanState.FAILED))

    def _post(self, message) -> bool:
        if self.stop_event.is_set():
            return False
        self.outbox.put(message)
        return True

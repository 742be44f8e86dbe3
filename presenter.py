"""
Presenter Layer - Coordinates scan sessions and the View
========================================================

Handles UI events, starts and stops scan sessions and applies the messages
posted by the scan worker to the view.

All view calls happen on the Tk main thread: the worker's outbox queue is
drained with root.after(...).
"""

# ============================================================================
# IMPORTS
# ============================================================================

import logging
import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TYPE_CHECKING

from config_loader import ConfigValidator
from error_handling import ConfigurationError, ErrorContext, ErrorSeverity, ScanStateError
from kill_event_exporter import export_kill_events
from kill_event_models import format_kill_event
from log_monitor import (
    AlertRaised,
    LogMonitor,
    ScanReset,
    ScanState,
    ScanStateChanged,
    ScanUpdate,
)
from settings_data import ChannelType, SettingsData

if TYPE_CHECKING:
    from dependency_injection import DependencyContainer

logger = logging.getLogger("sckm.presenter")


@dataclass(frozen=True)
class ExportFinished:
    """Result of a background XLSX export"""
    path: Optional[Path]
    error: Optional[str] = None


# ============================================================================
# CLASSES
# ============================================================================

class KillMonitorPresenter:
    """Presenter layer - coordinates between scan sessions and the View"""

    def __init__(
        self,
        view,
        container: 'DependencyContainer',
        monitor_factory: Callable[[], LogMonitor]
    ):
        """
        Initialize the presenter

        Args:
            view: KillMonitorView instance
            container: Dependency container (config, settings, error handler, outbox)
            monitor_factory: Creates a fresh LogMonitor for each scan
        """
        self.view = view
        self.container = container
        self.config = container.config
        self.settings: SettingsData = container.settings
        self.error_handler = container.error_handler
        self.outbox: queue.Queue = container.outbox
        self.monitor_factory = monitor_factory

        self.monitor: Optional[LogMonitor] = None
        self.active_session_id: Optional[str] = None

        # Alerts are shown by the view
        self.error_handler.on_error = self.view.show_alert

        # Connect view callbacks to presenter methods
        self.view.on_start = self.handle_start
        self.view.on_stop = self.handle_stop
        self.view.on_show_all_changed = self.handle_show_all_changed
        self.view.on_channel_changed = self.handle_channel_changed
        self.view.on_settings = self.handle_settings
        self.view.on_export = self.handle_export
        self.view.on_about = self.handle_about

        self.settings.add_listener(self._on_settings_changed)

        # Tkinter is not thread-safe: the queue is drained on the Tk main
        # thread via root.after(...)
        self._stop_drain = threading.Event()
        self._drain_after_id = None

    def start(self):
        """Show the start panel and begin draining the outbox"""
        self.view.load_start_inputs(
            handle=self.settings.handle,
            interval_text=str(self.settings.interval),
            channel_labels=[c.label for c in ChannelType],
            selected_label=self.settings.selected_channel.label,
            path=self.settings.selected_path,
        )
        self.view.show_start_panel()

        self._stop_drain.clear()
        self._schedule_drain()

    def stop(self):
        """Stop the presenter and any running scan"""
        self._stop_drain.set()

        if self._drain_after_id is not None:
            try:
                self.view.root.after_cancel(self._drain_after_id)
            except Exception as e:
                logger.debug("after_cancel failed: %s", e)
            self._drain_after_id = None

        monitor = self.monitor
        self._end_session()
        if monitor is not None:
            monitor.join(timeout=self.config.monitoring.join_timeout_seconds)

        self.settings.remove_listener(self._on_settings_changed)

    # ========================================================================
    # OUTBOX DRAIN
    # ========================================================================

    def _schedule_drain(self):
        """Drain pending messages, then schedule the next drain"""
        if self._stop_drain.is_set():
            return

        try:
            self.drain_queue()
        except Exception as e:
            logger.exception("Queue drain failed: %s", e)

        try:
            self._drain_after_id = self.view.root.after(
                self.config.monitoring.queue_drain_ms, self._schedule_drain
            )
        except Exception as e:
            # Window already destroyed
            logger.debug("after() failed: %s", e)
            self._drain_after_id = None

    def drain_queue(self, max_messages: int = 500) -> int:
        """
        Apply pending worker messages to the view

        Returns:
            Number of messages taken from the queue
        """
        handled = 0
        while handled < max_messages:
            try:
                message = self.outbox.get_nowait()
            except queue.Empty:
                break
            handled += 1
            self._handle_message(message)
        return handled

    def _handle_message(self, message):
        if isinstance(message, ExportFinished):
            self._show_export_result(message)
            return

        if message.session_id != self.active_session_id:
            logger.debug("Dropping message of inactive session: %s", type(message).__name__)
            return

        if isinstance(message, ScanUpdate):
            # Newest first
            self.view.prepend_events([format_kill_event(e) for e in message.events])
            self.view.update_counters(message.kill_count, message.death_count)

        elif isinstance(message, ScanReset):
            self.view.clear_events()
            self.view.update_counters(0, 0)

        elif isinstance(message, AlertRaised):
            self.view.show_alert(message.severity, message.header, message.message)

        elif isinstance(message, ScanStateChanged):
            self.view.set_status(message.state.value)
            if message.state is ScanState.FAILED:
                self._end_session()
                self.view.show_start_panel()

    # ========================================================================
    # SCAN SESSION
    # ========================================================================

    def handle_start(self):
        """Validate the start panel inputs and start a new scan"""
        inputs = self.view.get_start_inputs()
        channel = ChannelType.from_label(inputs["channel"])
        path = self.settings.path_for(channel)

        try:
            interval = ConfigValidator.validate_start_inputs(
                inputs["handle"], inputs["interval"], path
            )
        except ConfigurationError as e:
            self.error_handler.handle_error(
                e, ErrorContext("start", "KillMonitorPresenter", {"channel": channel.value})
            )
            return

        self.settings.update(
            handle=inputs["handle"].strip(),
            interval=interval,
            selected_channel=channel,
        )
        self.container.save_settings()

        if self.monitor is not None:
            self._end_session()

        monitor = self.monitor_factory()
        self.monitor = monitor
        self.active_session_id = monitor.session_id

        self.view.clear_events()
        self.view.update_counters(0, 0)
        self.view.show_scan_panel(
            killer_mode_active=self.settings.killer_mode_active,
            show_all=self.settings.show_all,
        )

        try:
            monitor.start()
        except ScanStateError as e:
            self._end_session()
            self.view.show_start_panel()
            self.error_handler.handle_error(e)

    def handle_stop(self):
        """Stop the running scan and return to the start panel"""
        self._end_session()
        self.view.set_status(ScanState.STOPPED.value)
        self.view.show_start_panel()

    def _end_session(self):
        if self.monitor is not None:
            self.monitor.stop()
        self.monitor = None
        self.active_session_id = None

    def handle_show_all_changed(self, value: bool):
        self.settings.update(show_all=bool(value))
        self.container.save_settings()

        if self.monitor is not None and self.monitor.state is ScanState.RUNNING:
            self.monitor.set_show_all(bool(value))

    def handle_channel_changed(self, label: str):
        self.settings.update(selected_channel=ChannelType.from_label(label))

    def _on_settings_changed(self, settings: SettingsData):
        self.view.set_path_display(settings.selected_path)

    # ========================================================================
    # DIALOGS
    # ========================================================================

    def handle_settings(self):
        """Open the settings dialog and persist the result"""
        current = {
            "path_live": self.settings.path_live,
            "path_ptu": self.settings.path_ptu,
            "path_eptu": self.settings.path_eptu,
            "path_hotfix": self.settings.path_hotfix,
            "path_tech_preview": self.settings.path_tech_preview,
            "path_custom": self.settings.path_custom,
            "write_to_file": self.settings.write_to_file,
            "killer_mode_active": self.settings.killer_mode_active,
        }

        result = self.view.show_settings_dialog(current)
        if not result:
            return

        self.settings.update(**result)
        self.container.save_settings()
        logger.info("Settings updated")

        if self.monitor is not None:
            logger.info("Changed settings apply to the next scan")

    def handle_export(self):
        """Export the current session's kill events to XLSX (background thread)"""
        if self.monitor is None:
            self.view.show_alert(ErrorSeverity.INFO, "Nothing to export", "Start a scan first.")
            return

        events = self.monitor.session.get_kill_events()
        handle = self.monitor.handle
        export_dir = self.config.paths.export_dir

        def export_thread():
            try:
                path = export_kill_events(events, export_dir, handle)
            except Exception as e:
                logger.exception("XLSX export failed")
                self.outbox.put(ExportFinished(path=None, error=str(e)))
                return
            self.outbox.put(ExportFinished(path=path))

        threading.Thread(target=export_thread, name="xlsx-export", daemon=True).start()

    def _show_export_result(self, result: ExportFinished):
        if result.error:
            self.view.show_alert(ErrorSeverity.ERROR, "Export failed", result.error)
        elif result.path is None:
            self.view.show_alert(ErrorSeverity.INFO, "Nothing to export", "No kill events recorded yet.")
        else:
            logger.info("Kill events exported: %s", result.path)
            self.view.show_alert(ErrorSeverity.INFO, "Export complete", f"Saved to:\n{result.path}")

    def handle_about(self):
        """About dialog (includes copyable diagnostics)"""
        paths = self.config.paths
        status = self.monitor.get_status() if self.monitor is not None else {}

        about_text = "\n".join([
            f"{self.config.app_name} v{self.config.version}\n",
            "Watches the Star Citizen game.log and lists the deaths (and, in",
            "killer mode, the kills) of your handle.",
            "\nPaths:",
            f"  Game log:    {self.settings.selected_path}",
            f"  Settings:    {paths.settings_path}",
            f"  Kill files:  {paths.kill_log_dir.resolve()}",
            f"  Export dir:  {paths.export_dir}",
            f"  App log:     {paths.app_log_path.resolve()}",
        ])

        diagnostics = "\n".join([
            f"app={self.config.app_name}",
            f"version={self.config.version}",
            f"channel={self.settings.selected_channel.value}",
            f"log_path={self.settings.selected_path}",
            f"settings_path={paths.settings_path}",
            f"scan_state={status.get('state', ScanState.IDLE.value)}",
            f"ticks={status.get('ticks', 0)}",
            f"lines_parsed={status.get('lines_parsed', 0)}",
            f"lines_skipped={status.get('lines_skipped', 0)}",
            f"recent_errors={len(self.error_handler.get_recent_errors())}",
            f"python={sys.version.split()[0]}",
        ])

        self.view.show_about_dialog(about_text, copy_text=diagnostics)

"""
Unit Tests - SC Kill Monitor
============================

Tests cover:
- Line tokenizer and event parser
- Scan session (dedup, ordering, relevance, counting, show-all)
- Kill event file format
- Settings load/save and start validation
- Error handling
- Scan loop (ticks, persistence, failure, cancellation, show-all)
- Presenter queue draining (mocked view)
- XLSX export
"""

import json
import os
import queue
import tempfile
import threading
import time
import types
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

# Import components to test
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

import openpyxl

from config_loader import ConfigValidator, SettingsLoader
from dependency_injection import (
    AppConfig,
    DependencyContainer,
    MonitoringConfig,
    PathConfig,
    UIConfig,
    create_log_monitor,
)
from error_handling import (
    ConfigurationError,
    ErrorHandler,
    ErrorSeverity,
    KillMonitorError,
    LogFileError,
    PersistenceError,
    ScanStateError,
    retry_on_error,
    with_error_handling,
)
from kill_event_exporter import export_kill_events
from kill_event_models import KillEvent, format_kill_event, format_timestamp, is_no_player, is_relevant
from kill_event_parser import KillEventParser, extract_value, parse_timestamp
from kill_event_writer import KillEventWriter
from log_monitor import (
    AlertRaised,
    LogFileReader,
    LogMonitor,
    ScanReset,
    ScanState,
    ScanStateChanged,
    ScanUpdate,
)
from model import ScanSession
from presenter import ExportFinished, KillMonitorPresenter
from settings_data import ChannelType, SettingsData, default_log_path


# ============================================================================
# HELPERS
# ============================================================================

UTC = timezone.utc


def death_line(ts: str, victim: str, killer: str, weapon: str = "Gun", zone: str = "Stanton") -> str:
    return (
        f"<{ts}> [Notice] <Actor Death> CActor::Kill: '{victim}' [200146297631] "
        f"in zone '{zone}' killed by '{killer}' [201990709220] using '{weapon}' "
        f"[Class Rifle] with damage type 'Ballistic' from direction x: 0, y: 0, z: 0 "
        f"[Team_ActorTech][Actor]\n"
    )


def make_event(minute: int, victim: str = "Me", killer: str = "Other", **kwargs) -> KillEvent:
    fields = {
        "weapon": "Gun",
        "weapon_class": "Rifle",
        "damage_type": "Ballistic",
        "zone": "Stanton",
    }
    fields.update(kwargs)
    return KillEvent(
        timestamp=datetime(2025, 1, 1, 10, minute, 0, tzinfo=UTC),
        killed_player=victim,
        killer=killer,
        **fields
    )


def wait_for(outbox: queue.Queue, predicate, timeout: float = 5.0):
    """Take messages until predicate matches; returns (message, all seen)"""
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            message = outbox.get(timeout=0.05)
        except queue.Empty:
            continue
        seen.append(message)
        if predicate(message):
            return message, seen
    raise AssertionError(f"Timed out waiting for message, seen: {seen}")


def drain(outbox: queue.Queue) -> list:
    messages = []
    while True:
        try:
            messages.append(outbox.get_nowait())
        except queue.Empty:
            return messages


# ============================================================================
# TOKENIZER / PARSER
# ============================================================================

class TestExtractValue(unittest.TestCase):
    """Test the delimiter tokenizer"""

    def test_value_between_tokens(self):
        self.assertEqual(extract_value("a[Class Foo]b", "[Class ", "]"), "Foo")

    def test_missing_start_token(self):
        self.assertEqual(extract_value("no class here]", "[Class ", "]"), "")

    def test_missing_end_token(self):
        self.assertEqual(extract_value("a[Class Foo", "[Class ", "]"), "")

    def test_end_token_searched_after_start(self):
        self.assertEqual(extract_value("x]y[Class Foo]z", "[Class ", "]"), "Foo")

    def test_empty_value(self):
        self.assertEqual(extract_value("using ''", "using '", "'"), "")


class TestParseTimestamp(unittest.TestCase):
    """Test ISO timestamp parsing"""

    def test_zulu(self):
        ts = parse_timestamp("2025-01-01T10:00:00.123Z")
        self.assertEqual(ts, datetime(2025, 1, 1, 10, 0, 0, 123000, tzinfo=UTC))

    def test_offset(self):
        ts = parse_timestamp("2025-01-01T12:00:00+02:00")
        self.assertEqual(ts, datetime(2025, 1, 1, 10, 0, 0, tzinfo=UTC))

    def test_region_suffix(self):
        ts = parse_timestamp("2025-01-01T11:00:00+01:00[Europe/Berlin]")
        self.assertEqual(ts, datetime(2025, 1, 1, 10, 0, 0, tzinfo=UTC))

    def test_naive_rejected(self):
        from error_handling import LogParseError
        with self.assertRaises(LogParseError):
            parse_timestamp("2025-01-01T10:00:00")

    def test_garbage_rejected(self):
        from error_handling import LogParseError
        with self.assertRaises(LogParseError):
            parse_timestamp("yesterday")


class TestKillEventParser(unittest.TestCase):
    """Test <Actor Death> line parsing"""

    def setUp(self):
        self.parser = KillEventParser()

    def test_parse_actor_death_line(self):
        event = self.parser.parse_line(death_line("2025-01-01T10:00:00.123Z", "Pilot1", "Pilot2"))

        self.assertIsNotNone(event)
        self.assertEqual(event.timestamp, datetime(2025, 1, 1, 10, 0, 0, 123000, tzinfo=UTC))
        self.assertEqual(event.killed_player, "Pilot1")
        self.assertEqual(event.zone, "Stanton")
        self.assertEqual(event.killer, "Pilot2")
        self.assertEqual(event.weapon, "Gun")
        self.assertEqual(event.weapon_class, "Rifle")
        self.assertEqual(event.damage_type, "Ballistic")
        self.assertEqual(self.parser.get_stats(), {"lines_parsed": 1, "lines_skipped": 0})

    def test_parse_line_without_marker(self):
        line = (
            "<2025-01-01T10:00:00Z> CActor::Kill: 'Pilot1' in zone 'Stanton' "
            "killed by 'Pilot2' using 'Gun' [Class Rifle] with damage type 'Ballistic'"
        )

        event = self.parser.parse(line)

        self.assertEqual(event, KillEvent(
            timestamp=datetime(2025, 1, 1, 10, 0, 0, tzinfo=UTC),
            killed_player="Pilot1",
            killer="Pilot2",
            weapon="Gun",
            weapon_class="Rifle",
            damage_type="Ballistic",
            zone="Stanton",
        ))
        # The scan loop entry point still requires the marker
        self.assertIsNone(self.parser.parse_line(line))

    def test_parse_bad_timestamp_returns_none(self):
        with self.assertLogs("sckm.parser", level="ERROR"):
            self.assertIsNone(self.parser.parse("<yesterday> CActor::Kill: 'Pilot1'"))
        self.assertEqual(self.parser.lines_skipped, 1)

    def test_non_marker_line_is_not_extracted(self):
        with patch("kill_event_parser.extract_value") as mock_extract:
            result = self.parser.parse_line("<2025-01-01T10:00:00.123Z> [Notice] <Vehicle Destruction> CVehicle::OnAdvanceDamageState")

        self.assertIsNone(result)
        mock_extract.assert_not_called()

    def test_bad_timestamp_is_skipped(self):
        with self.assertLogs("sckm.parser", level="ERROR"):
            result = self.parser.parse_line(death_line("not-a-date", "Pilot1", "Pilot2"))

        self.assertIsNone(result)
        self.assertEqual(self.parser.lines_skipped, 1)

    def test_missing_brackets_is_skipped(self):
        with self.assertLogs("sckm.parser", level="ERROR"):
            result = self.parser.parse_line("x> [Notice] <Actor Death>")

        self.assertIsNone(result)

    def test_missing_fields_are_empty(self):
        event = self.parser.parse_line("<2025-01-01T10:00:00Z> <Actor Death>")

        self.assertIsNotNone(event)
        self.assertEqual(event.killed_player, "")
        self.assertEqual(event.killer, "")
        self.assertEqual(event.weapon_class, "")

    def test_identical_lines_give_equal_events(self):
        line = death_line("2025-01-01T10:00:00.123Z", "Pilot1", "Pilot2")
        self.assertEqual(self.parser.parse_line(line), self.parser.parse_line(line))


# ============================================================================
# MODELS / FORMATTING
# ============================================================================

class TestKillEventModels(unittest.TestCase):
    """Test relevance, no-player filter and display formatting"""

    def test_no_player_markers(self):
        self.assertTrue(is_no_player(make_event(0, killer="NPC_Pirate_01")))
        self.assertTrue(is_no_player(make_event(0, killer="AIModule_Unmanned")))
        self.assertTrue(is_no_player(make_event(0, victim="PU_Human_Enemy")))
        self.assertTrue(is_no_player(make_event(0, killer="unknown")))
        self.assertTrue(is_no_player(make_event(0, killer="Kopion_Adult")))
        self.assertFalse(is_no_player(make_event(0, victim="Me", killer="Other")))

    def test_self_kill(self):
        self.assertTrue(make_event(0, victim="Me", killer="Me").is_self_kill)
        self.assertFalse(make_event(0, victim="Me", killer="Other").is_self_kill)

    def test_relevance(self):
        victim = make_event(0, victim="Me", killer="Other")
        kill = make_event(1, victim="Other", killer="Me")

        self.assertTrue(is_relevant(victim, "Me", False))
        self.assertFalse(is_relevant(kill, "Me", False))
        self.assertTrue(is_relevant(kill, "Me", True))
        self.assertFalse(is_relevant(victim, "me", False))

    def test_format_timestamp_converts_to_utc(self):
        ts = datetime(2025, 1, 1, 12, 0, 0, 123000, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(format_timestamp(ts), "01.01.25 10:00:00.123 UTC")

    def test_format_kill_event(self):
        text = format_kill_event(make_event(5))
        self.assertEqual(text.splitlines(), [
            "Kill Date = 01.01.25 10:05:00.000 UTC",
            "Killed Player = Me",
            "Zone = Stanton",
            "Killer = Other",
            "Used Method/Weapon = Gun",
            "Class = Rifle",
            "Damage Type = Ballistic",
        ])

    def test_to_dict_field_names(self):
        data = make_event(0).to_dict()
        self.assertEqual(
            list(data.keys()),
            ["timestamp", "killedPlayer", "killer", "weapon", "weaponClass", "damageType", "zone"]
        )
        self.assertEqual(data["timestamp"], "2025-01-01T10:00:00+00:00")


# ============================================================================
# SCAN SESSION
# ============================================================================

class TestScanSession(unittest.TestCase):
    """Test ingest/evaluate bookkeeping"""

    def setUp(self):
        self.session = ScanSession()

    def test_ingest_is_idempotent(self):
        events = [make_event(0), make_event(1)]

        first = self.session.ingest(events, "Me", False)
        second = self.session.ingest(events, "Me", False)

        self.assertEqual(len(first), 2)
        self.assertEqual(second, [])
        self.assertEqual(len(self.session.get_kill_events()), 2)

    def test_events_sorted_newest_first(self):
        self.session.ingest([make_event(1), make_event(3)], "Me", False)
        self.session.ingest([make_event(2), make_event(0)], "Me", False)

        minutes = [e.timestamp.minute for e in self.session.get_kill_events()]
        self.assertEqual(minutes, [3, 2, 1, 0])

    def test_irrelevant_events_are_dropped(self):
        inserted = self.session.ingest([make_event(0, victim="Someone", killer="Else")], "Me", True)

        self.assertEqual(inserted, [])
        self.assertEqual(self.session.get_kill_events(), [])

    def test_killer_mode_counts(self):
        events = [
            make_event(0, victim="Me", killer="Other"),   # death
            make_event(1, victim="Other", killer="Me"),   # kill
            make_event(2, victim="Me", killer="Me"),      # suicide counts as death
        ]
        self.session.ingest(events, "Me", True)

        displayed = self.session.evaluate("Me", True, show_all=False)

        self.assertEqual(len(displayed), 3)
        self.assertEqual(self.session.get_counters(), {"kill_count": 1, "death_count": 2})

    def test_evaluate_only_returns_new_events(self):
        self.session.ingest([make_event(0)], "Me", False)
        self.assertEqual(len(self.session.evaluate("Me", False, False)), 1)

        self.session.ingest([make_event(0), make_event(1)], "Me", False)
        displayed = self.session.evaluate("Me", False, False)

        self.assertEqual([e.timestamp.minute for e in displayed], [1])
        self.assertEqual(self.session.death_count, 2)

    def test_no_player_hidden_until_show_all(self):
        npc_kill = make_event(0, victim="Me", killer="NPC_Guard")
        self.session.ingest([npc_kill, make_event(1)], "Me", False)

        displayed = self.session.evaluate("Me", False, show_all=False)
        self.assertEqual([e.timestamp.minute for e in displayed], [1])
        self.assertNotIn(npc_kill, self.session.get_evaluated_events())
        self.assertIn(npc_kill, self.session.get_kill_events())

        self.session.reset_evaluation()
        self.assertEqual(self.session.get_counters(), {"kill_count": 0, "death_count": 0})

        displayed = self.session.evaluate("Me", False, show_all=True)
        self.assertEqual(len(displayed), 2)
        self.assertEqual(self.session.death_count, 2)

    def test_concurrent_reads_see_sorted_list(self):
        stop = threading.Event()
        problems = []

        def reader():
            while not stop.is_set():
                snapshot = self.session.get_kill_events()
                stamps = [e.timestamp for e in snapshot]
                if stamps != sorted(stamps, reverse=True):
                    problems.append(stamps)

        thread = threading.Thread(target=reader)
        thread.start()
        for minute in range(50):
            self.session.ingest([make_event(minute)], "Me", False)
        stop.set()
        thread.join()

        self.assertEqual(problems, [])


# ============================================================================
# KILL EVENT WRITER
# ============================================================================

class TestKillEventWriter(unittest.TestCase):
    """Test the append-only kill event file"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.writer = KillEventWriter(log_dir=self.tmp / "logs", error_handler=ErrorHandler(Mock()))

    def test_file_name(self):
        self.assertEqual(self.writer.path_for("250101-100000").name, "kill-events_250101-100000.log")

    def test_records_are_comma_separated(self):
        first, second = make_event(0), make_event(1)

        self.assertTrue(self.writer.append(first, "250101-100000"))
        self.assertTrue(self.writer.append(second, "250101-100000"))

        content = self.writer.path_for("250101-100000").read_bytes().decode("utf-8")
        expected = (
            json.dumps(first.to_dict(), indent=2, ensure_ascii=False)
            + "," + os.linesep
            + json.dumps(second.to_dict(), indent=2, ensure_ascii=False)
        )
        self.assertEqual(content, expected)

        records = json.loads("[" + content + "]")
        self.assertEqual([r["timestamp"] for r in records], [
            "2025-01-01T10:00:00+00:00",
            "2025-01-01T10:01:00+00:00",
        ])

    def test_first_record_has_no_separator(self):
        self.writer.append(make_event(0), "s")
        content = self.writer.path_for("s").read_text(encoding="utf-8")
        self.assertTrue(content.startswith("{"))

    def test_retried_write_keeps_file_parseable(self):
        self.writer.append(make_event(0), "s")
        real_open = Path.open

        class FailOnSecondWrite:
            """File wrapper whose second write() raises"""

            def __init__(self, f):
                self.f = f
                self.writes = 0

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self.f.close()
                return False

            def write(self, text):
                self.writes += 1
                if self.writes == 2:
                    raise OSError("disk full")
                return self.f.write(text)

        def flaky_open(path, *args, **kwargs):
            return FailOnSecondWrite(real_open(path, *args, **kwargs))

        with patch.object(Path, "open", flaky_open):
            self.assertTrue(self.writer.append(make_event(1), "s"))

        content = self.writer.path_for("s").read_text(encoding="utf-8")
        records = json.loads("[" + content + "]")
        self.assertEqual(len(records), 2)

    def test_write_failure_returns_false(self):
        blocker = self.tmp / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        writer = KillEventWriter(log_dir=blocker / "logs", error_handler=ErrorHandler(Mock()))

        self.assertFalse(writer.append(make_event(0), "s"))
        errors = writer.error_handler.get_recent_errors()
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], PersistenceError)


# ============================================================================
# SETTINGS
# ============================================================================

class TestSettings(unittest.TestCase):
    """Test settings defaults, persistence and change notification"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)

    def test_defaults(self):
        settings = SettingsData()

        self.assertEqual(settings.handle, "")
        self.assertEqual(settings.interval, 60)
        self.assertEqual(settings.selected_channel, ChannelType.LIVE)
        self.assertFalse(settings.show_all)
        self.assertFalse(settings.write_to_file)
        self.assertFalse(settings.killer_mode_active)
        self.assertEqual(settings.path_custom, "")
        self.assertEqual(Path(settings.path_live).parts[-2:], ("LIVE", "game.log"))
        self.assertEqual(Path(default_log_path(ChannelType.TECH_PREVIEW)).parts[-2:], ("TECH-PREVIEW", "game.log"))

    def test_channel_labels(self):
        self.assertEqual(ChannelType.TECH_PREVIEW.label, "TECH-PREVIEW")
        self.assertEqual(ChannelType.from_label("Custom"), ChannelType.CUSTOM)
        self.assertEqual(ChannelType.from_label("PTU"), ChannelType.PTU)

    def test_yaml_round_trip(self):
        path = self.tmp / "settings.yaml"
        settings = SettingsData(handle="Pilot1", interval=15, killer_mode_active=True,
                                selected_channel=ChannelType.PTU, path_ptu="/games/ptu/game.log")

        self.assertTrue(SettingsLoader.save(settings, path))
        loaded = SettingsLoader.load(path)

        self.assertEqual(loaded, settings)
        self.assertIn("player_handle: Pilot1", path.read_text(encoding="utf-8"))

    def test_json_round_trip(self):
        path = self.tmp / "settings.json"
        settings = SettingsData(handle="Pilot1", show_all=True)

        SettingsLoader.save(settings, path)
        data = json.loads(path.read_text(encoding="utf-8"))

        self.assertEqual(data["player_handle"], "Pilot1")
        self.assertEqual(data["interval_seconds"], 60)
        self.assertEqual(data["selected_channel"], "LIVE")
        self.assertEqual(SettingsLoader.load(path), settings)

    def test_missing_file_gives_defaults(self):
        with self.assertLogs("sckm.settings", level="WARNING"):
            settings = SettingsLoader.load(self.tmp / "missing.yaml")
        self.assertEqual(settings, SettingsData())

    def test_corrupt_file_gives_defaults(self):
        path = self.tmp / "settings.yaml"
        path.write_text("player_handle: [unclosed", encoding="utf-8")

        with self.assertLogs("sckm.settings", level="WARNING"):
            settings = SettingsLoader.load(path)
        self.assertEqual(settings, SettingsData())

    def test_bad_value_falls_back_to_default(self):
        path = self.tmp / "settings.yaml"
        path.write_text(
            "player_handle: Pilot1\ninterval_seconds: abc\nshow_all: maybe\nselected_channel: NOPE\n",
            encoding="utf-8"
        )

        with self.assertLogs("sckm.settings", level="WARNING"):
            settings = SettingsLoader.load(path)

        self.assertEqual(settings.handle, "Pilot1")
        self.assertEqual(settings.interval, 60)
        self.assertFalse(settings.show_all)
        self.assertEqual(settings.selected_channel, ChannelType.LIVE)

    def test_save_failure_keeps_settings(self):
        blocker = self.tmp / "blocker"
        blocker.write_text("x", encoding="utf-8")
        settings = SettingsData(handle="Pilot1")

        with self.assertLogs("sckm.settings", level="ERROR"):
            self.assertFalse(SettingsLoader.save(settings, blocker / "settings.yaml"))
        self.assertEqual(settings.handle, "Pilot1")

    def test_listeners_notified(self):
        settings = SettingsData()
        listener = Mock()
        settings.add_listener(listener)

        settings.update(handle="Pilot1", interval=5)

        listener.assert_called_once_with(settings)
        self.assertEqual(settings.interval, 5)

        settings.remove_listener(listener)
        settings.update(show_all=True)
        listener.assert_called_once()

    def test_unknown_setting_rejected(self):
        with self.assertRaises(AttributeError):
            SettingsData().update(colour="red")

    def test_selected_path(self):
        settings = SettingsData(path_custom="/tmp/game.log", selected_channel=ChannelType.CUSTOM)
        self.assertEqual(settings.selected_path, "/tmp/game.log")


class TestConfigValidator(unittest.TestCase):
    """Test start panel validation"""

    def assertRejected(self, handle, interval, path, header, message):
        with self.assertRaises(ConfigurationError) as ctx:
            ConfigValidator.validate_start_inputs(handle, interval, path)
        self.assertEqual(ctx.exception.header, header)
        self.assertEqual(ctx.exception.user_message, message)

    def test_empty_handle(self):
        self.assertRejected("", "60", "game.log", "Handle is empty", "Please enter a handle")

    def test_whitespace_handle_counts_as_empty(self):
        self.assertRejected("   ", "60", "game.log", "Handle is empty", "Please enter a handle")

    def test_empty_interval(self):
        self.assertRejected("Me", "", "game.log", "Interval is empty", "Please enter an interval")

    def test_empty_path(self):
        self.assertRejected("Me", "60", "", "Path is empty", "Please select a path")

    def test_invalid_interval(self):
        for value in ("abc", "0", "-5", "1.5"):
            self.assertRejected("Me", value, "game.log", "Interval is invalid", "Please enter a valid interval")

    def test_valid_inputs(self):
        self.assertEqual(ConfigValidator.validate_start_inputs("Me", " 30 ", "game.log"), 30)

    def test_validate_settings(self):
        settings = SettingsData(selected_channel=ChannelType.CUSTOM)
        errors = ConfigValidator.validate(settings)
        self.assertEqual(len(errors), 1)


class TestConfiguration(unittest.TestCase):
    """Test configuration classes"""

    def test_app_config_creation(self):
        config = AppConfig.create_default()

        self.assertEqual(config.app_name, "SC Kill Monitor")
        self.assertIsInstance(config.paths, PathConfig)
        self.assertIsInstance(config.monitoring, MonitoringConfig)
        self.assertIsInstance(config.ui, UIConfig)
        self.assertEqual(config.paths.settings_path.name, "settings.yaml")
        self.assertEqual(config.paths.kill_log_dir, Path("logs"))
        self.assertEqual(config.monitoring.queue_drain_ms, 100)

    def test_container_builds_monitor(self):
        with tempfile.TemporaryDirectory() as tmp:
            config = AppConfig.create_default()
            config.paths.settings_path = Path(tmp) / "settings.yaml"
            config.paths.app_log_path = Path(tmp) / "app.log"
            config.paths.kill_log_dir = Path(tmp) / "logs"

            container = DependencyContainer.create(config)
            try:
                self.assertEqual(container.settings, SettingsData())

                monitor = create_log_monitor(container)
                self.assertIs(monitor.outbox, container.outbox)
                self.assertIs(monitor.error_handler, container.error_handler)
                self.assertEqual(monitor.writer.log_dir, Path(tmp) / "logs")

                self.assertTrue(container.save_settings())
                self.assertTrue(config.paths.settings_path.exists())
            finally:
                container.cleanup()


# ============================================================================
# ERROR HANDLING
# ============================================================================

class TestErrorHandling(unittest.TestCase):
    """Test error handling system"""

    def setUp(self):
        self.mock_logger = Mock()
        self.error_handler = ErrorHandler(self.mock_logger)

    def test_error_fields(self):
        error = LogFileError("boom")

        self.assertEqual(error.severity, ErrorSeverity.ERROR)
        self.assertEqual(error.header, "Failed to read log file")
        self.assertEqual(error.user_message, "Please check if the file exists and the path is set correctly.")

    def test_alert_callback(self):
        callback = Mock()
        self.error_handler.on_error = callback

        self.error_handler.handle_error(ConfigurationError("x", header="Handle is empty", user_message="Please enter a handle"))

        callback.assert_called_once_with(ErrorSeverity.ERROR, "Handle is empty", "Please enter a handle")
        self.mock_logger.error.assert_called()

    def test_no_alert_from_worker_thread(self):
        callback = Mock()
        self.error_handler.on_error = callback

        thread = threading.Thread(target=self.error_handler.handle_error, args=(LogFileError("x"),))
        thread.start()
        thread.join()

        callback.assert_not_called()
        self.assertEqual(len(self.error_handler.get_recent_errors()), 1)

    def test_generic_exception_wrapped(self):
        callback = Mock()
        self.error_handler.on_error = callback

        self.error_handler.handle_error(ValueError("bad"))

        callback.assert_called_once_with(
            ErrorSeverity.ERROR, "ERROR", "An error occurred while performing the desired action."
        )
        self.assertIsInstance(self.error_handler.get_recent_errors()[0], KillMonitorError)

    def test_history_bounded(self):
        for i in range(120):
            self.error_handler.handle_error(KillMonitorError(f"e{i}"), notify_user=False)

        self.assertEqual(len(self.error_handler.error_history), 100)
        self.assertEqual(self.error_handler.get_recent_errors(1)[0].message, "e119")

    def test_with_error_handling_returns_default(self):
        handler = self.error_handler

        class Component:
            error_handler = handler

            @with_error_handling("Component", "operation", default_return="default")
            def failing(self):
                raise RuntimeError("Intentional failure")

        callback = Mock()
        handler.on_error = callback

        self.assertEqual(Component().failing(), "default")
        self.assertEqual(len(handler.get_recent_errors()), 1)
        callback.assert_not_called()

    def test_retry_succeeds_on_retry(self):
        calls = [0]

        @retry_on_error(max_attempts=3, delay_seconds=0.01)
        def flaky():
            calls[0] += 1
            if calls[0] < 2:
                raise OSError("Fail on first call")
            return "success"

        self.assertEqual(flaky(), "success")
        self.assertEqual(calls[0], 2)

    def test_retry_fails_after_max_attempts(self):
        @retry_on_error(max_attempts=3, delay_seconds=0.01)
        def always_fails():
            raise ValueError("Always fails")

        with self.assertRaises(ValueError):
            always_fails()


# ============================================================================
# SCAN LOOP
# ============================================================================

class TestLogFileReader(unittest.TestCase):
    """Test whole-file reads"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "game.log"
        self.reader = LogFileReader()

    def test_reads_all_lines(self):
        self.path.write_text("a\nb\nc\n", encoding="utf-8")
        self.assertEqual(self.reader.read_lines(self.path, threading.Event()), ["a\n", "b\n", "c\n"])

    def test_cancelled_read_returns_none(self):
        self.path.write_text("a\nb\n", encoding="utf-8")
        stop = threading.Event()
        stop.set()
        self.assertIsNone(self.reader.read_lines(self.path, stop))

    def test_missing_file_raises(self):
        with self.assertRaises(LogFileError):
            self.reader.read_lines(self.path, threading.Event())

    def test_invalid_utf8_ignored(self):
        self.path.write_bytes(b"ok \xff line\n")
        self.assertEqual(self.reader.read_lines(self.path, threading.Event()), ["ok  line\n"])


class TestLogMonitor(unittest.TestCase):
    """Test the scan loop end to end on a temporary log file"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.log_path = self.tmp / "game.log"
        self.outbox = queue.Queue()
        self.settings = SettingsData(
            handle="Pilot1",
            interval=60,
            selected_channel=ChannelType.CUSTOM,
            path_custom=str(self.log_path),
        )

    def make_monitor(self, **kwargs) -> LogMonitor:
        monitor = LogMonitor(
            settings=self.settings,
            outbox=self.outbox,
            writer=KillEventWriter(log_dir=self.tmp / "logs", error_handler=ErrorHandler(Mock())),
            error_handler=ErrorHandler(Mock()),
            **kwargs
        )
        self.addCleanup(monitor.join, 2.0)
        self.addCleanup(monitor.stop)
        return monitor

    def write_lines(self, *lines: str, mode: str = "w"):
        with self.log_path.open(mode, encoding="utf-8") as f:
            f.writelines(lines)

    def test_first_tick_posts_events_newest_first(self):
        self.write_lines(
            "<2025-01-01T09:59:00Z> [Notice] unrelated line\n",
            death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"),
            death_line("2025-01-01T10:05:00Z", "Pilot1", "Pilot3"),
            death_line("2025-01-01T10:06:00Z", "Someone", "Pilot1"),
        )
        monitor = self.make_monitor()
        monitor.start()

        update, seen = wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        self.assertEqual(seen[0], ScanStateChanged(monitor.session_id, ScanState.RUNNING))
        self.assertEqual([e.killer for e in update.events], ["Pilot3", "Pilot2"])
        self.assertEqual(update.death_count, 2)
        self.assertEqual(update.kill_count, 0)
        self.assertEqual(update.session_id, monitor.session_id)
        self.assertEqual(monitor.state, ScanState.RUNNING)

    def test_new_lines_picked_up_once(self):
        self.settings.interval = 1
        self.write_lines(death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"))
        monitor = self.make_monitor()
        monitor.start()
        wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        self.write_lines(death_line("2025-01-01T10:01:00Z", "Pilot1", "Pilot4"), mode="a")
        update, _ = wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        self.assertEqual([e.killer for e in update.events], ["Pilot4"])
        self.assertEqual(update.death_count, 2)
        self.assertEqual(len(monitor.session.get_kill_events()), 2)

    def test_killer_mode_counts_kills(self):
        self.settings.killer_mode_active = True
        self.write_lines(
            death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"),
            death_line("2025-01-01T10:01:00Z", "Pilot2", "Pilot1"),
        )
        monitor = self.make_monitor()
        monitor.start()

        update, _ = wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        self.assertEqual((update.kill_count, update.death_count), (1, 1))

    def test_write_to_file_persists_new_events(self):
        self.settings.write_to_file = True
        self.write_lines(
            death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"),
            death_line("2025-01-01T10:01:00Z", "Pilot1", "NPC_Guard"),
        )
        monitor = self.make_monitor()
        monitor.start()
        wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        path = monitor.writer.path_for(monitor.file_suffix)
        deadline = time.monotonic() + 5
        records = []
        while time.monotonic() < deadline:
            if path.exists():
                records = json.loads("[" + path.read_text(encoding="utf-8") + "]")
                if len(records) == 2:
                    break
            time.sleep(0.05)

        # Hidden NPC kills are persisted too
        self.assertEqual([r["killer"] for r in records], ["Pilot2", "NPC_Guard"])
        self.assertRegex(path.name, r"^kill-events_\d{6}-\d{6}\.log$")

    def test_missing_file_fails_once(self):
        monitor = self.make_monitor()
        monitor.start()

        wait_for(self.outbox, lambda m: isinstance(m, ScanStateChanged) and m.state is ScanState.FAILED)
        self.assertTrue(monitor.join(2.0))

        self.assertEqual(monitor.state, ScanState.FAILED)
        self.assertEqual(drain(self.outbox), [])

    def test_missing_file_alert(self):
        monitor = self.make_monitor()
        monitor.start()

        _, seen = wait_for(self.outbox, lambda m: isinstance(m, ScanStateChanged) and m.state is ScanState.FAILED)
        alerts = [m for m in seen if isinstance(m, AlertRaised)]

        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].severity, ErrorSeverity.ERROR)
        self.assertEqual(alerts[0].header, "Failed to read log file")
        self.assertEqual(alerts[0].message, "Please check if the file exists and the path is set correctly.")

    def test_stop_posts_nothing_more(self):
        self.write_lines(death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"))
        monitor = self.make_monitor()
        monitor.start()
        wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        monitor.stop()
        self.assertTrue(monitor.join(2.0))
        self.write_lines(death_line("2025-01-01T10:01:00Z", "Pilot1", "Pilot2"), mode="a")
        time.sleep(0.2)

        self.assertEqual(monitor.state, ScanState.STOPPED)
        self.assertEqual(drain(self.outbox), [])

    def test_stop_during_read_discards_tick(self):
        reader = Mock()
        monitor = self.make_monitor(reader=reader)

        def read_and_stop(path, stop_event):
            monitor.stop()
            return [death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2")]

        reader.read_lines.side_effect = read_and_stop
        monitor.start()
        self.assertTrue(monitor.join(2.0))

        self.assertEqual(monitor.session.get_kill_events(), [])
        self.assertEqual(drain(self.outbox), [ScanStateChanged(monitor.session_id, ScanState.RUNNING)])

    def test_terminal_monitor_cannot_restart(self):
        self.write_lines(death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"))
        monitor = self.make_monitor()
        monitor.start()

        with self.assertRaises(ScanStateError):
            monitor.start()

        monitor.stop()
        with self.assertRaises(ScanStateError):
            monitor.start()

    def test_show_all_resets_and_rescans(self):
        self.write_lines(
            death_line("2025-01-01T10:00:00Z", "Pilot1", "NPC_Guard"),
            death_line("2025-01-01T10:01:00Z", "Pilot1", "Pilot2"),
        )
        monitor = self.make_monitor()
        monitor.start()
        update, _ = wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))
        self.assertEqual([e.killer for e in update.events], ["Pilot2"])

        monitor.set_show_all(True)
        update, seen = wait_for(self.outbox, lambda m: isinstance(m, ScanUpdate))

        self.assertIsInstance(seen[0], ScanReset)
        self.assertEqual([e.killer for e in update.events], ["Pilot2", "NPC_Guard"])
        self.assertEqual(update.death_count, 2)

    def test_settings_read_once_at_start(self):
        self.write_lines(death_line("2025-01-01T10:00:00Z", "Pilot1", "Pilot2"))
        monitor = self.make_monitor()
        monitor.start()
        self.settings.update(handle="Somebody")

        self.assertEqual(monitor.handle, "Pilot1")


# ============================================================================
# PRESENTER
# ============================================================================

class TestPresenter(unittest.TestCase):
    """Test presenter logic with a mocked view"""

    def setUp(self):
        self.view = Mock()
        self.settings = SettingsData(path_custom="/logs/game.log")
        self.container = types.SimpleNamespace(
            config=AppConfig.create_default(),
            settings=self.settings,
            error_handler=ErrorHandler(Mock()),
            outbox=queue.Queue(),
            save_settings=Mock(return_value=True),
        )
        self.monitor = Mock()
        self.monitor.session_id = "s1"
        self.monitor_factory = Mock(return_value=self.monitor)
        self.presenter = KillMonitorPresenter(self.view, self.container, self.monitor_factory)

    def test_drain_applies_active_session_updates(self):
        self.presenter.active_session_id = "s1"
        event = make_event(0)
        self.container.outbox.put(ScanUpdate("old", (make_event(1),), 0, 1))
        self.container.outbox.put(ScanUpdate("s1", (event,), 0, 1))

        self.assertEqual(self.presenter.drain_queue(), 2)

        self.view.prepend_events.assert_called_once_with([format_kill_event(event)])
        self.view.update_counters.assert_called_once_with(0, 1)

    def test_reset_clears_display(self):
        self.presenter.active_session_id = "s1"
        self.container.outbox.put(ScanReset("s1"))

        self.presenter.drain_queue()

        self.view.clear_events.assert_called_once()
        self.view.update_counters.assert_called_once_with(0, 0)

    def test_failure_returns_to_start_panel(self):
        self.presenter.monitor = self.monitor
        self.presenter.active_session_id = "s1"
        self.container.outbox.put(AlertRaised("s1", ErrorSeverity.ERROR, "Failed to read log file", "check"))
        self.container.outbox.put(ScanStateChanged("s1", ScanState.FAILED))

        self.presenter.drain_queue()

        self.view.show_alert.assert_called_once_with(ErrorSeverity.ERROR, "Failed to read log file", "check")
        self.view.show_start_panel.assert_called_once()
        self.assertIsNone(self.presenter.active_session_id)

    def test_start_rejected_on_empty_handle(self):
        self.view.get_start_inputs.return_value = {"handle": "", "interval": "60", "channel": "LIVE"}

        self.presenter.handle_start()

        self.view.show_alert.assert_called_once_with(ErrorSeverity.ERROR, "Handle is empty", "Please enter a handle")
        self.monitor_factory.assert_not_called()

    def test_start_creates_and_starts_monitor(self):
        self.view.get_start_inputs.return_value = {"handle": "Pilot1 ", "interval": "30", "channel": "Custom"}

        self.presenter.handle_start()

        self.monitor.start.assert_called_once()
        self.assertEqual(self.presenter.active_session_id, "s1")
        self.assertEqual(self.settings.handle, "Pilot1")
        self.assertEqual(self.settings.interval, 30)
        self.assertEqual(self.settings.selected_channel, ChannelType.CUSTOM)
        self.container.save_settings.assert_called_once()
        self.view.show_scan_panel.assert_called_once_with(killer_mode_active=False, show_all=False)

    def test_stop_ends_session(self):
        self.presenter.monitor = self.monitor
        self.presenter.active_session_id = "s1"

        self.presenter.handle_stop()

        self.monitor.stop.assert_called_once()
        self.assertIsNone(self.presenter.active_session_id)
        self.view.show_start_panel.assert_called_once()

    def test_show_all_forwarded_to_running_monitor(self):
        self.monitor.state = ScanState.RUNNING
        self.presenter.monitor = self.monitor

        self.presenter.handle_show_all_changed(True)

        self.assertTrue(self.settings.show_all)
        self.monitor.set_show_all.assert_called_once_with(True)

    def test_channel_change_updates_path(self):
        self.presenter.handle_channel_changed("Custom")

        self.assertEqual(self.settings.selected_channel, ChannelType.CUSTOM)
        self.view.set_path_display.assert_called_with("/logs/game.log")

    def test_export_result_shown(self):
        self.container.outbox.put(ExportFinished(path=Path("out.xlsx")))

        self.presenter.drain_queue()

        severity, header, _ = self.view.show_alert.call_args[0]
        self.assertEqual((severity, header), (ErrorSeverity.INFO, "Export complete"))


# ============================================================================
# XLSX EXPORT
# ============================================================================

class TestKillEventExporter(unittest.TestCase):
    """Test the XLSX export"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)

    def test_no_events_no_file(self):
        self.assertIsNone(export_kill_events([], self.tmp, "Me"))
        self.assertEqual(list(self.tmp.iterdir()), [])

    def test_export_rows(self):
        events = [make_event(1, victim="Other", killer="Me"), make_event(0)]

        path = export_kill_events(events, self.tmp / "exports", "Me")

        self.assertTrue(path.exists())
        ws = openpyxl.load_workbook(path).active
        self.assertEqual(ws["A4"].value, "Kill Date (UTC)")
        self.assertEqual(ws.cell(row=5, column=1).value, datetime(2025, 1, 1, 10, 1))
        self.assertEqual(ws.cell(row=5, column=2).value, "Other")
        self.assertEqual(ws.cell(row=5, column=8).value, "Kill")
        self.assertEqual(ws.cell(row=6, column=8).value, "Death")


# ============================================================================
# RUN TESTS
# ============================================================================

if __name__ == "__main__":
    unittest.main(verbosity=2)

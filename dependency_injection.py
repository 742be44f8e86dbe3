"""
Dependency Injection System
============================

Provides dependency injection for the application.

- Application configuration as dataclasses (not dicts)
- User settings as an explicit SettingsData object owned by the container
- Factory functions for the view, presenter and scan monitor
"""

# ============================================================================
# IMPORTS
# ============================================================================

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TYPE_CHECKING
import logging
import queue

from theme import DEFAULT_COLORS

if TYPE_CHECKING:
    from error_handling import ErrorHandler
    from settings_data import SettingsData


APP_NAME = "SC Kill Monitor"
APP_VERSION = "1.2.0"


# ============================================================================
# CONFIGURATION CLASSES
# ============================================================================

@dataclass
class PathConfig:
    """Where settings, kill event files, the app log and exports live"""
    settings_path: Path
    kill_log_dir: Path
    app_log_path: Path
    export_dir: Path

    @classmethod
    def from_environment(cls) -> 'PathConfig':
        """Create path configuration for the current user"""
        settings_dir = Path.home() / ".sc_kill_monitor"

        return cls(
            settings_path=settings_dir / "settings.yaml",
            kill_log_dir=Path("logs"),
            app_log_path=Path("logs") / "sc-kill-monitor.log",
            export_dir=Path.home() / "Documents" / "SC Kill Monitor",
        )


@dataclass
class MonitoringConfig:
    """Scan loop configuration"""
    queue_drain_ms: int = 100
    join_timeout_seconds: float = 2.0


@dataclass
class UIConfig:
    """Main window size and palette"""
    window_width: int = 560
    window_height: int = 640

    # Color scheme
    colors: dict = field(default_factory=lambda: dict(DEFAULT_COLORS))


@dataclass
class AppConfig:
    """Static application configuration (user settings live in SettingsData)"""
    app_name: str
    version: str
    paths: PathConfig
    monitoring: MonitoringConfig
    ui: UIConfig

    @classmethod
    def create_default(cls) -> 'AppConfig':
        """Defaults for the current user"""
        return cls(
            app_name=APP_NAME,
            version=APP_VERSION,
            paths=PathConfig.from_environment(),
            monitoring=MonitoringConfig(),
            ui=UIConfig()
        )


# ============================================================================
# ROTATING FILE LOG
# ============================================================================

class FileLogger:
    """Rotating application log file (thread-safe + bounded disk usage).

    Attaches a RotatingFileHandler to the "sckm" logger so every module
    logger below it (sckm.monitor, sckm.parser, ...) ends up in the file.
    """

    def __init__(
        self,
        log_path: Path,
        *,
        max_bytes: int = 5 * 1024 * 1024,   # 5 MB per file
        backup_count: int = 5,              # keep last 5 files
        logger_name: str = "sckm",
    ):
        self.log_path = Path(log_path)
        self._logger = logging.getLogger(logger_name)
        self._handler = None

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._logger.warning("Cannot create log directory %s: %s", self.log_path.parent, e)
            return

        from logging.handlers import RotatingFileHandler

        # Avoid duplicate handlers when the container is created twice
        for existing in self._logger.handlers:
            if getattr(existing, "baseFilename", None) == str(self.log_path.resolve()):
                self._handler = existing
                return

        handler = RotatingFileHandler(
            filename=str(self.log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        formatter = logging.Formatter(
            fmt="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)
        self._handler = handler

    def info(self, message: str):
        self._logger.info(message)

    def close(self):
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None


# ============================================================================
# DEPENDENCY CONTAINER
# ============================================================================

@dataclass
class DependencyContainer:
    """
    Owns the shared objects of one application run

    The view, presenter and every LogMonitor get what they need from here.
    """
    config: AppConfig
    settings: 'SettingsData'
    logger: FileLogger
    error_handler: 'ErrorHandler'
    outbox: queue.Queue = field(default_factory=queue.Queue)

    @classmethod
    def create(cls, config: Optional[AppConfig] = None, settings: Optional['SettingsData'] = None) -> 'DependencyContainer':
        """
        Build the container and load the user settings

        Args:
            config: Application configuration (uses default if None)
            settings: User settings (loaded from the settings file if None)

        Returns:
            Configured dependency container
        """
        if config is None:
            config = AppConfig.create_default()

        logger = FileLogger(config.paths.app_log_path)
        logger.info(f"Application starting: {config.app_name} v{config.version}")

        # Import here to avoid circular dependencies
        from config_loader import SettingsLoader
        from error_handling import ErrorHandler

        if settings is None:
            settings = SettingsLoader.load(config.paths.settings_path)

        error_handler = ErrorHandler(logging.getLogger("sckm.errors"))

        return cls(
            config=config,
            settings=settings,
            logger=logger,
            error_handler=error_handler
        )

    def save_settings(self) -> bool:
        from config_loader import SettingsLoader
        return SettingsLoader.save(self.settings, self.config.paths.settings_path)

    def cleanup(self):
        """Detach the file log handler"""
        self.logger.info("Application shutdown complete")
        self.logger.close()


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_writer(container: DependencyContainer):
    """
    Factory function to create the kill event writer

    Returns:
        KillEventWriter writing below config.paths.kill_log_dir
    """
    from kill_event_writer import KillEventWriter

    return KillEventWriter(
        log_dir=container.config.paths.kill_log_dir,
        error_handler=container.error_handler
    )


def create_log_monitor(container: DependencyContainer):
    """
    Factory function to create a LogMonitor for one scan session

    A new monitor is created for every scan; terminal monitors are not
    restarted.
    """
    from log_monitor import LogMonitor

    return LogMonitor(
        settings=container.settings,
        outbox=container.outbox,
        writer=create_writer(container),
        error_handler=container.error_handler
    )


def create_view(container: DependencyContainer, root):
    """
    Factory function to create View with injected dependencies

    Args:
        container: Dependency container
        root: Tkinter root window

    Returns:
        Configured KillMonitorView instance
    """
    from view import KillMonitorView

    return KillMonitorView(
        root=root,
        config=container.config
    )


def create_presenter(container: DependencyContainer, view):
    """
    Factory function to create Presenter with injected dependencies

    Args:
        container: Dependency container
        view: View instance

    Returns:
        Configured KillMonitorPresenter instance
    """
    from presenter import KillMonitorPresenter

    return KillMonitorPresenter(
        view=view,
        container=container,
        monitor_factory=lambda: create_log_monitor(container)
    )

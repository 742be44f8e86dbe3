# ============================================================================
# IMPORTS
# ============================================================================

import argparse
import logging
import tkinter as tk
from pathlib import Path
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sckm.main")

from config_loader import ConfigValidator
from dependency_injection import (
    AppConfig,
    DependencyContainer,
    create_presenter,
    create_view,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

def get_config(settings_path: Optional[Path] = None) -> AppConfig:
    """
    Get application configuration.

    User settings live in a single file at a stable location
    (~/.sc_kill_monitor/settings.yaml); --settings points somewhere else.
    """
    config = AppConfig.create_default()
    if settings_path is not None:
        config.paths.settings_path = Path(settings_path).expanduser()
    return config


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Star Citizen kill/death monitor")
    parser.add_argument("--settings", type=Path, default=None, help="Settings file (.yaml, .yml or .json)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def main(argv=None):
    """Main application entry point"""
    args = parse_args(argv)
    if args.debug:
        logging.getLogger("sckm").setLevel(logging.DEBUG)

    config = get_config(args.settings)
    container = DependencyContainer.create(config)

    for problem in ConfigValidator.validate(container.settings):
        logger.warning("Settings: %s", problem)

    root = tk.Tk()

    view = create_view(container, root)
    view.build_ui()
    presenter = create_presenter(container, view)

    # ========================================================================
    # WINDOW CLOSE HANDLER
    # ========================================================================

    def on_closing():
        """Clean shutdown of all components"""
        # Prevent double-trigger (WM + programmatic)
        if getattr(on_closing, "_closing", False):
            return
        on_closing._closing = True

        logger.info("Shutting down...")

        # Stop presenter (stops the running scan, cancels pending after() calls)
        try:
            presenter.stop()
        except Exception as e:
            logger.error("Shutdown: presenter.stop: %s", e)

        container.save_settings()

        try:
            root.destroy()
        except tk.TclError as e:
            logger.debug("Shutdown: root.destroy: %s", e)

        logger.info("Shutdown complete")
        container.cleanup()

    # ========================================================================
    # START APPLICATION
    # ========================================================================
    root.protocol("WM_DELETE_WINDOW", on_closing)
    presenter.start()

    logger.info("Starting UI...")
    root.mainloop()

    logger.info("Application stopped")


# ============================================================================
# ENTRYPOINT
# ============================================================================

if __name__ == "__main__":
    main()

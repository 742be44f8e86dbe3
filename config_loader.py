"""
Configuration File Loader
==========================

Load and save the user settings from a YAML or JSON file.

The settings file lives in the user's home folder:

    ~/.sc_kill_monitor/settings.yaml

A missing or unreadable file is not an error: defaults are used and the
next save creates it.
"""

# ============================================================================
# MODULE OVERVIEW
# ============================================================================
# Purpose:
#   config_loader.py
#
# Connected modules (direct imports):
#   settings_data, error_handling
# ============================================================================

import yaml
import json
import logging
from pathlib import Path
from typing import Dict, Any

from settings_data import (
    SettingsData,
    ChannelType,
    KEY_TO_ATTRIBUTE,
    SETTINGS_SCAN_INTERVAL_SECONDS,
    SETTINGS_SELECTED_CHANNEL,
)
from error_handling import ConfigurationError, SettingsError

logger = logging.getLogger("sckm.settings")

DEFAULT_SETTINGS_PATH = Path.home() / ".sc_kill_monitor" / "settings.yaml"

BOOLEAN_ATTRIBUTES = {"show_all", "write_to_file", "killer_mode_active"}


# ============================================================================
# CLASSES
# ============================================================================

class SettingsLoader:
    """Load and save SettingsData"""

    SUPPORTED_FORMATS = {'.yaml', '.yml', '.json'}

    @classmethod
    def load(cls, filepath: Path = DEFAULT_SETTINGS_PATH) -> SettingsData:
        """
        Load settings from file

        Args:
            filepath: Path to settings file (.yaml, .yml, or .json)

        Returns:
            SettingsData; all defaults if the file is missing or unreadable
        """
        try:
            data = cls.read_file(filepath)
        except SettingsError as e:
            logger.warning("%s - using default settings", e.message)
            return SettingsData()

        return cls.from_dict(data)

    @classmethod
    def read_file(cls, filepath: Path) -> Dict[str, Any]:
        """
        Read the raw settings mapping

        Raises:
            SettingsError: If file not found, unsupported or invalid
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise SettingsError(
                f"Settings file not found: {filepath}",
                context={"filepath": str(filepath)}
            )

        if filepath.suffix not in cls.SUPPORTED_FORMATS:
            raise SettingsError(
                f"Unsupported settings format: {filepath.suffix}. "
                f"Supported: {', '.join(sorted(cls.SUPPORTED_FORMATS))}",
                context={"filepath": str(filepath), "suffix": filepath.suffix}
            )

        try:
            with filepath.open('r', encoding='utf-8') as f:
                if filepath.suffix == '.json':
                    data = json.load(f)
                else:  # YAML
                    data = yaml.safe_load(f)
        except Exception as e:
            raise SettingsError(
                f"Failed to parse settings file: {e}",
                context={"filepath": str(filepath), "error": str(e)}
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise SettingsError(
                "Settings file does not contain a mapping",
                context={"filepath": str(filepath)}
            )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SettingsData:
        """
        Convert a settings mapping to SettingsData

        Unknown keys are ignored. A value of the wrong type falls back to its
        default with a warning.
        """
        settings = SettingsData()

        for key, attribute in KEY_TO_ATTRIBUTE.items():
            if key not in data:
                continue
            raw = data[key]
            try:
                value = cls._convert(attribute, raw)
            except (TypeError, ValueError) as e:
                logger.warning("Invalid value for %s (%r): %s - using default", key, raw, e)
                continue
            setattr(settings, attribute, value)

        return settings

    @staticmethod
    def _convert(attribute: str, raw: Any) -> Any:
        if attribute == "selected_channel":
            return ChannelType(str(raw))
        if attribute == "interval":
            if isinstance(raw, bool):
                raise TypeError("boolean is not an interval")
            value = int(raw)
            if value < 1:
                raise ValueError("interval must be at least 1 second")
            return value
        if attribute in BOOLEAN_ATTRIBUTES:
            if not isinstance(raw, bool):
                raise TypeError(f"expected true/false, got {type(raw).__name__}")
            return raw
        if raw is None:
            return ""
        if not isinstance(raw, str):
            raise TypeError(f"expected text, got {type(raw).__name__}")
        return raw

    @classmethod
    def save(cls, settings: SettingsData, filepath: Path = DEFAULT_SETTINGS_PATH) -> bool:
        """
        Save settings to file

        Args:
            settings: SettingsData to save
            filepath: Path to save to (.yaml or .json)

        Returns:
            True on success; False if the file could not be written (logged,
            in-memory settings are kept)
        """
        try:
            cls.write_file(settings.to_dict(), filepath)
        except SettingsError as e:
            logger.error("%s", e.message)
            return False
        logger.debug("Settings saved to %s", filepath)
        return True

    @classmethod
    def write_file(cls, data: Dict[str, Any], filepath: Path):
        """
        Raises:
            SettingsError: If the file cannot be written
        """
        filepath = Path(filepath)

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            with filepath.open('w', encoding='utf-8') as f:
                if filepath.suffix == '.json':
                    json.dump(data, f, indent=2)
                else:  # YAML
                    yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        except Exception as e:
            raise SettingsError(
                f"Failed to save settings file: {e}",
                context={"filepath": str(filepath), "error": str(e)}
            ) from e


class ConfigValidator:
    """Validate the inputs of the start panel"""

    @staticmethod
    def validate_start_inputs(handle_text: str, interval_text: str, path: str) -> int:
        """
        Validate handle, interval and log path before a scan starts

        Args:
            handle_text: Player handle as typed
            interval_text: Scan interval in seconds as typed
            path: Log path of the selected channel

        Returns:
            The interval as a positive integer

        Raises:
            ConfigurationError: On the first invalid input, carrying the
                alert header and message
        """
        if not handle_text or not handle_text.strip():
            raise ConfigurationError(
                "Handle is empty",
                header="Handle is empty",
                user_message="Please enter a handle"
            )

        if not interval_text or not interval_text.strip():
            raise ConfigurationError(
                "Interval is empty",
                header="Interval is empty",
                user_message="Please enter an interval"
            )

        if not path or not str(path).strip():
            raise ConfigurationError(
                "Path is empty",
                header="Path is empty",
                user_message="Please select a path"
            )

        try:
            interval = int(interval_text.strip())
        except ValueError:
            interval = 0
        if interval < 1:
            raise ConfigurationError(
                f"Interval is invalid: {interval_text!r}",
                header="Interval is invalid",
                user_message="Please enter a valid interval",
                context={SETTINGS_SCAN_INTERVAL_SECONDS: interval_text}
            )

        return interval

    @staticmethod
    def validate(settings: SettingsData) -> list[str]:
        """
        Validate loaded settings

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if settings.interval < 1:
            errors.append("interval_seconds must be positive")

        if not isinstance(settings.selected_channel, ChannelType):
            errors.append(f"{SETTINGS_SELECTED_CHANNEL} must be a known channel")

        if settings.selected_channel is ChannelType.CUSTOM and not settings.path_custom:
            errors.append("path_custom must be set when the Custom channel is selected")

        return errors

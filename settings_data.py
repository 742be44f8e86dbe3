"""
Settings Data
=============

User settings as an explicit object owned by the application container.

Components that care about changes register a plain callback with
add_listener(); every update() notifies them after the new values are set.
The scan loop does not listen: it reads the values it needs once, when a
scan starts.
"""

# ============================================================================
# IMPORTS
# ============================================================================

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Any, List

logger = logging.getLogger("sckm.settings")


# ============================================================================
# CHANNELS
# ============================================================================

class ChannelType(Enum):
    """Game build variants, each with its own game.log"""
    LIVE = "LIVE"
    PTU = "PTU"
    EPTU = "EPTU"
    HOTFIX = "HOTFIX"
    TECH_PREVIEW = "TECH_PREVIEW"
    CUSTOM = "CUSTOM"

    @property
    def label(self) -> str:
        """Name shown in the channel selector"""
        return _CHANNEL_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> 'ChannelType':
        for channel, text in _CHANNEL_LABELS.items():
            if text == label:
                return channel
        return cls(label)


_CHANNEL_LABELS = {
    ChannelType.LIVE: "LIVE",
    ChannelType.PTU: "PTU",
    ChannelType.EPTU: "EPTU",
    ChannelType.HOTFIX: "HOTFIX",
    ChannelType.TECH_PREVIEW: "TECH-PREVIEW",
    ChannelType.CUSTOM: "Custom",
}


# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_INTERVAL_SECONDS = 60

# Settings file keys
SETTINGS_PATH_LIVE = "path_live"
SETTINGS_PATH_PTU = "path_ptu"
SETTINGS_PATH_EPTU = "path_eptu"
SETTINGS_PATH_HOTFIX = "path_hotfix"
SETTINGS_PATH_TECH_PREVIEW = "path_tech_preview"
SETTINGS_PATH_CUSTOM = "path_custom"
SETTINGS_PLAYER_HANDLE = "player_handle"
SETTINGS_SCAN_INTERVAL_SECONDS = "interval_seconds"
SETTINGS_SHOW_ALL = "show_all"
SETTINGS_WRITE_TO_FILE = "write_to_file"
SETTINGS_KILLER_MODE_ACTIVE = "killer_mode_active"
SETTINGS_SELECTED_CHANNEL = "selected_channel"

# Settings file key -> SettingsData attribute
KEY_TO_ATTRIBUTE = {
    SETTINGS_PATH_LIVE: "path_live",
    SETTINGS_PATH_PTU: "path_ptu",
    SETTINGS_PATH_EPTU: "path_eptu",
    SETTINGS_PATH_HOTFIX: "path_hotfix",
    SETTINGS_PATH_TECH_PREVIEW: "path_tech_preview",
    SETTINGS_PATH_CUSTOM: "path_custom",
    SETTINGS_PLAYER_HANDLE: "handle",
    SETTINGS_SCAN_INTERVAL_SECONDS: "interval",
    SETTINGS_SHOW_ALL: "show_all",
    SETTINGS_WRITE_TO_FILE: "write_to_file",
    SETTINGS_KILLER_MODE_ACTIVE: "killer_mode_active",
    SETTINGS_SELECTED_CHANNEL: "selected_channel",
}


def default_install_dir() -> Path:
    """StarCitizen folder of a default RSI launcher install"""
    if os.name == "nt":
        return Path("C:/Program Files/Roberts Space Industries/StarCitizen")
    # Wine/Lutris prefix used by the community installer
    return (
        Path.home() / "Games" / "star-citizen" / "drive_c"
        / "Program Files" / "Roberts Space Industries" / "StarCitizen"
    )


def default_log_path(channel: ChannelType) -> str:
    if channel is ChannelType.CUSTOM:
        return ""
    return str(default_install_dir() / channel.label / "game.log")


# ============================================================================
# SETTINGS DATA
# ============================================================================

@dataclass
class SettingsData:
    """User settings (paths per channel, handle, scan options)"""
    path_live: str = field(default_factory=lambda: default_log_path(ChannelType.LIVE))
    path_ptu: str = field(default_factory=lambda: default_log_path(ChannelType.PTU))
    path_eptu: str = field(default_factory=lambda: default_log_path(ChannelType.EPTU))
    path_hotfix: str = field(default_factory=lambda: default_log_path(ChannelType.HOTFIX))
    path_tech_preview: str = field(default_factory=lambda: default_log_path(ChannelType.TECH_PREVIEW))
    path_custom: str = ""
    handle: str = ""
    interval: int = DEFAULT_INTERVAL_SECONDS
    selected_channel: ChannelType = ChannelType.LIVE
    show_all: bool = False
    write_to_file: bool = False
    killer_mode_active: bool = False

    _listeners: List[Callable[['SettingsData'], None]] = field(
        default_factory=list, repr=False, compare=False
    )

    # ========================================================================
    # CHANGE NOTIFICATION
    # ========================================================================

    def add_listener(self, callback: Callable[['SettingsData'], None]):
        """Register a callback invoked with this object after every update"""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[['SettingsData'], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def update(self, **changes):
        """
        Set one or more settings and notify listeners once

        Raises:
            AttributeError: for unknown setting names
        """
        for name, value in changes.items():
            if name.startswith("_") or name not in self.__dataclass_fields__:
                raise AttributeError(f"Unknown setting: {name}")
            setattr(self, name, value)

        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception as e:
                logger.error("Settings listener failed: %s", e)

    # ========================================================================
    # PATHS
    # ========================================================================

    def path_for(self, channel: ChannelType) -> str:
        return {
            ChannelType.LIVE: self.path_live,
            ChannelType.PTU: self.path_ptu,
            ChannelType.EPTU: self.path_eptu,
            ChannelType.HOTFIX: self.path_hotfix,
            ChannelType.TECH_PREVIEW: self.path_tech_preview,
            ChannelType.CUSTOM: self.path_custom,
        }[channel]

    @property
    def selected_path(self) -> str:
        return self.path_for(self.selected_channel)

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Settings file representation (settings keys, plain values)"""
        data = {}
        for key, attribute in KEY_TO_ATTRIBUTE.items():
            value = getattr(self, attribute)
            data[key] = value.value if isinstance(value, ChannelType) else value
        return data

"""UI theme constants.

Colors only. User settings (handle, paths, flags) live in settings_data.

UIConfig.colors starts as a copy of DEFAULT_COLORS; the view resolves every
key through resolve_color() so a partial override still yields a full palette.
"""

from __future__ import annotations

from typing import Dict, Mapping

# Dark HUD palette; ORANGE is the accent, GREEN/RED are the kill/death counters
DEFAULT_COLORS: Dict[str, str] = {
    "BG": "#0b0d12",
    "BG_PANEL": "#141821",
    "BG_FIELD": "#1c2130",
    "TEXT": "#dfe6f5",
    "MUTED": "#6f7a92",
    "BORDER_OUTER": "#2b3245",
    "BORDER_INNER": "#20263a",
    "ORANGE": "#f29c38",
    "ORANGE_DIM": "#b8741f",
    "GREEN": "#4cd787",
    "RED": "#ef5350",
    "LED_ACTIVE": "#00e676",
    "LED_IDLE": "#7b8190",
}


def resolve_color(overrides: Mapping[str, str], key: str) -> str:
    """Color for key, taken from overrides when set there, else the default."""
    val = overrides.get(key) if overrides else None
    return str(val) if val else DEFAULT_COLORS[key]

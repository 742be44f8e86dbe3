"""
Kill Event Models - Data structures for <Actor Death> events
=============================================================

A KillEvent is an immutable value: two log lines that produce identical
field values are the same event.

Also holds the display formatting used by the scan panel and the
"is this about a real player" check used for the show-all filter.
"""

# ============================================================================
# IMPORTS
# ============================================================================

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any


# =============================================================================
# CONSTANTS
# =============================================================================

# Name fragments of NPCs and engine entities (matched case-insensitively)
NO_PLAYER_MARKERS = ("unknown", "aimodule", "pu_", "npc_", "kopion_")

DISPLAY_DATE_FORMAT = "%d.%m.%y %H:%M:%S"


# =============================================================================
# KILL EVENT
# =============================================================================

@dataclass(frozen=True)
class KillEvent:
    """
    A single player-death event parsed from the game log.

    Fields:
        timestamp: timezone-aware time of the kill
        killed_player: name of the player that died
        killer: player, NPC or entity that performed the kill
        weapon: weapon or method used
        weapon_class: class of the weapon
        damage_type: e.g. Ballistic, Explosion, Crash
        zone: location/vehicle where the kill happened
    """
    timestamp: datetime
    killed_player: str
    killer: str
    weapon: str
    weapon_class: str
    damage_type: str
    zone: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the kill event file (field-named, ISO timestamp)"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "killedPlayer": self.killed_player,
            "killer": self.killer,
            "weapon": self.weapon,
            "weaponClass": self.weapon_class,
            "damageType": self.damage_type,
            "zone": self.zone,
        }

    @property
    def is_self_kill(self) -> bool:
        return self.killer == self.killed_player


# =============================================================================
# HELPERS
# =============================================================================

def _contains_marker(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in NO_PLAYER_MARKERS)


def is_no_player(event: KillEvent) -> bool:
    """True if the killer or the killed player looks like an NPC or engine entity"""
    return _contains_marker(event.killer) or _contains_marker(event.killed_player)


def is_relevant(event: KillEvent, handle: str, killer_mode_active: bool) -> bool:
    """
    Whether an event belongs in the session for the monitored handle.

    Victim matches always count; killer matches only in killer mode.
    """
    if event.killed_player == handle:
        return True
    return killer_mode_active and event.killer == handle


def format_timestamp(timestamp: datetime) -> str:
    """dd.MM.yy HH:mm:ss.SSS UTC"""
    utc = timestamp.astimezone(timezone.utc)
    millis = utc.microsecond // 1000
    return f"{utc.strftime(DISPLAY_DATE_FORMAT)}.{millis:03d} UTC"


def format_kill_event(event: KillEvent) -> str:
    """Multi-line, labeled text block shown for each kill event"""
    return "\n".join([
        f"Kill Date = {format_timestamp(event.timestamp)}",
        f"Killed Player = {event.killed_player}",
        f"Zone = {event.zone}",
        f"Killer = {event.killer}",
        f"Used Method/Weapon = {event.weapon}",
        f"Class = {event.weapon_class}",
        f"Damage Type = {event.damage_type}",
    ])

"""
Kill Event Parser
=================

Turns raw game.log lines into KillEvent values.

A death line looks like:

    <2025-01-01T10:00:00.123Z> [Notice] <Actor Death> CActor::Kill: 'Pilot1'
    [200146297631] in zone 'Stanton' killed by 'Pilot2' [201990709220]
    using 'Gun' [Class Rifle] with damage type 'Ballistic' ...

Fields are pulled out with fixed delimiter pairs rather than a full grammar,
so a line with a missing field still yields an event (with that field empty).
Only an unreadable timestamp rejects the line.

parse_line() is what the scan loop uses: lines without the <Actor Death>
marker are dropped before any field is looked at. parse() extracts from
any line and leaves the marker check to the caller.
"""

# ============================================================================
# IMPORTS
# ============================================================================

import logging
from datetime import datetime
from typing import Optional, Dict
from zoneinfo import ZoneInfo

from error_handling import LogParseError
from kill_event_models import KillEvent

logger = logging.getLogger("sckm.parser")


# ============================================================================
# CONSTANTS
# ============================================================================

ACTOR_DEATH_MARKER = "<Actor Death>"

KILLED_PLAYER_TOKENS = ("CActor::Kill: '", "'")
ZONE_TOKENS = ("in zone '", "'")
KILLER_TOKENS = ("killed by '", "'")
WEAPON_TOKENS = ("using '", "'")
WEAPON_CLASS_TOKENS = ("[Class ", "]")
DAMAGE_TYPE_TOKENS = ("with damage type '", "'")


# ============================================================================
# TOKENIZER
# ============================================================================

def extract_value(text: str, start_token: str, end_token: str) -> str:
    """
    Return the substring strictly between start_token and the next end_token.

    Returns "" when either delimiter is missing.
    """
    start_index = text.find(start_token)
    if start_index == -1:
        return ""
    start_index += len(start_token)
    end_index = text.find(end_token, start_index)
    if end_index == -1:
        return ""
    return text[start_index:end_index]


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an ISO-8601 date-time with offset or zone.

    Accepts "Z", "+HH:MM" and an optional "[Region/City]" suffix.
    Raises LogParseError for naive or malformed values.
    """
    value = raw.strip()
    zone_name = None
    if value.endswith("]") and "[" in value:
        value, _, zone_name = value[:-1].partition("[")
    if value[-1:] in ("Z", "z"):
        value = value[:-1] + "+00:00"

    try:
        timestamp = datetime.fromisoformat(value)
        if zone_name:
            zone = ZoneInfo(zone_name)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=zone)
            else:
                timestamp = timestamp.astimezone(zone)
    except Exception as e:
        raise LogParseError(
            f"Invalid timestamp: {raw!r}",
            context={"timestamp": raw, "error": str(e)}
        ) from e

    if timestamp.tzinfo is None:
        raise LogParseError(
            f"Timestamp without offset: {raw!r}",
            context={"timestamp": raw}
        )
    return timestamp


# ============================================================================
# PARSER
# ============================================================================

class KillEventParser:
    """Parses <Actor Death> lines and keeps simple statistics"""

    def __init__(self):
        self.lines_parsed = 0
        self.lines_skipped = 0

    @staticmethod
    def is_candidate(line: str) -> bool:
        return ACTOR_DEATH_MARKER in line

    def parse_line(self, line: str) -> Optional[KillEvent]:
        """
        Parse a raw log line, skipping everything but <Actor Death> lines

        Args:
            line: Raw log line

        Returns:
            KillEvent, or None for non-death lines and malformed lines
        """
        if not self.is_candidate(line):
            return None
        return self.parse(line)

    def parse(self, line: str) -> Optional[KillEvent]:
        """
        Parse a death line without checking for the <Actor Death> marker

        Returns:
            KillEvent, or None if the timestamp cannot be read
        """
        try:
            event = self._extract_event(line)
        except Exception as e:
            self.lines_skipped += 1
            logger.error("Failed to parse log line: %s", line.rstrip("\r\n"))
            logger.debug("Parse failure details", exc_info=e)
            return None

        self.lines_parsed += 1
        return event

    def _extract_event(self, line: str) -> KillEvent:
        start = line.find("<")
        end = line.find(">")
        if start == -1 or end == -1 or end < start:
            raise LogParseError("Missing timestamp brackets", context={"line": line[:120]})

        return KillEvent(
            timestamp=parse_timestamp(line[start + 1:end]),
            killed_player=extract_value(line, *KILLED_PLAYER_TOKENS),
            killer=extract_value(line, *KILLER_TOKENS),
            weapon=extract_value(line, *WEAPON_TOKENS),
            weapon_class=extract_value(line, *WEAPON_CLASS_TOKENS),
            damage_type=extract_value(line, *DAMAGE_TYPE_TOKENS),
            zone=extract_value(line, *ZONE_TOKENS),
        )

    def get_stats(self) -> Dict[str, int]:
        """Get parsing statistics"""
        return {
            "lines_parsed": self.lines_parsed,
            "lines_skipped": self.lines_skipped
        }

"""
Model Layer - Scan Session State
================================

Holds the kill events of one scan session and the kill/death counters.
No UI dependencies.

Only the scan worker thread mutates a session. Other threads (presenter,
exporter) read through the snapshot accessors.
"""

# ============================================================================
# IMPORTS
# ============================================================================

import logging
import threading
from typing import Iterable, Dict, List, Set

from kill_event_models import KillEvent, is_no_player, is_relevant

logger = logging.getLogger("sckm.model")


# ============================================================================
# CLASSES
# ============================================================================

class ScanSession:
    """Ordered, deduplicated kill events plus display bookkeeping"""

    def __init__(self):
        self._lock = threading.Lock()

        # Newest first, no value-equal duplicates
        self._kill_events: List[KillEvent] = []
        self._known: Set[KillEvent] = set()

        # Events already counted and handed to the display
        self._evaluated: Set[KillEvent] = set()

        self._kill_count = 0
        self._death_count = 0

    # ========================================================================
    # THREAD-SAFE STATE ACCESS
    # ========================================================================

    def get_kill_events(self) -> List[KillEvent]:
        """Snapshot of all recorded events, newest first"""
        with self._lock:
            return list(self._kill_events)

    def get_evaluated_events(self) -> Set[KillEvent]:
        with self._lock:
            return set(self._evaluated)

    def get_counters(self) -> Dict[str, int]:
        with self._lock:
            return {"kill_count": self._kill_count, "death_count": self._death_count}

    @property
    def kill_count(self) -> int:
        with self._lock:
            return self._kill_count

    @property
    def death_count(self) -> int:
        with self._lock:
            return self._death_count

    # ========================================================================
    # INGEST
    # ========================================================================

    def ingest(
        self,
        events: Iterable[KillEvent],
        handle: str,
        killer_mode_active: bool
    ) -> List[KillEvent]:
        """
        Insert the relevant, not yet known events of one scan tick.

        Args:
            events: Events parsed from the whole log file
            handle: Monitored player handle
            killer_mode_active: Also keep events where the handle is the killer

        Returns:
            Newly inserted events, in the order they were seen
        """
        inserted: List[KillEvent] = []

        with self._lock:
            for event in events:
                if event in self._known:
                    continue
                if not is_relevant(event, handle, killer_mode_active):
                    continue
                self._kill_events.insert(0, event)
                self._known.add(event)
                inserted.append(event)
                logger.info("New kill event detected")
                logger.debug("Kill event: %s", event)

            # Stable sort keeps insertion order for identical timestamps
            self._kill_events.sort(key=lambda e: e.timestamp, reverse=True)

        return inserted

    # ========================================================================
    # EVALUATION
    # ========================================================================

    def evaluate(
        self,
        handle: str,
        killer_mode_active: bool,
        show_all: bool
    ) -> List[KillEvent]:
        """
        Count and return the events that have not been displayed yet.

        Events that are not about a real player are skipped while show_all
        is off. They stay recorded and are picked up again once show_all is
        switched on and the evaluation is reset.

        Returns:
            Newly evaluated events, newest first
        """
        displayed: List[KillEvent] = []

        with self._lock:
            for event in self._kill_events:
                if event in self._evaluated:
                    continue
                if not show_all and is_no_player(event):
                    continue

                if killer_mode_active and event.killer == handle:
                    # Killing yourself is a death, not a kill
                    if event.is_self_kill:
                        self._death_count += 1
                    else:
                        self._kill_count += 1
                else:
                    self._death_count += 1

                self._evaluated.add(event)
                displayed.append(event)

        return displayed

    def reset_evaluation(self):
        """Forget what has been displayed and zero the counters"""
        with self._lock:
            self._evaluated.clear()
            self._kill_count = 0
            self._death_count = 0

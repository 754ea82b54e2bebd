# =============================================================================
# Motion Sound Trigger - Playback Gate
# v1.0.0
# =============================================================================
# A single-slot admission gate shared by the detection loop and the
# playback thread. It is the debounce mechanism: while a clip (and its
# cooldown) is in progress the gate is OCCUPIED and further motion is
# ignored, with no queueing.
#
#   FREE --try_acquire()--> OCCUPIED --release()--> FREE
#
# try_acquire() is a non-blocking semaphore acquire, so the test-and-set
# is atomic against a concurrent release() from the playback thread.
# =============================================================================

from __future__ import annotations

import logging
import threading

# Module-level logger.
logger = logging.getLogger(__name__)


class PlaybackGate:
    """Single-permit gate. At most one playback task holds it at a time."""

    def __init__(self) -> None:
        self._permit = threading.BoundedSemaphore(1)

        # Counters are only touched while the permit is held (admitted) or
        # just before it is handed back (released), so they never race.
        self._admitted: int = 0
        self._released: int = 0

    @property
    def admitted(self) -> int:
        return self._admitted

    @property
    def released(self) -> int:
        return self._released

    @property
    def occupied(self) -> bool:
        return self._admitted != self._released

    def try_acquire(self) -> bool:
        """Take the permit if it is free. Never blocks."""
        if not self._permit.acquire(blocking=False):
            return False
        self._admitted += 1
        logger.debug("Playback gate occupied (admission #%d).", self._admitted)
        return True

    def release(self) -> None:
        """Hand the permit back.

        Raises:
            RuntimeError: If the gate is already free.
        """
        if not self.occupied:
            raise RuntimeError("Playback gate released while already free.")
        self._released += 1
        self._permit.release()
        logger.debug("Playback gate free.")

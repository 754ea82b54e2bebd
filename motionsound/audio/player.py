# =============================================================================
# Motion Sound Trigger - Audio Player
# v1.0.0
# =============================================================================
# Plays one randomly chosen clip per admitted motion event.
#
# The detection loop calls trigger() on every frame with motion. trigger()
# only does the gate's test-and-set and, when admitted, starts a daemon
# thread, so frame processing never waits on audio. The thread:
#
#   1. picks a clip uniformly at random,
#   2. opens an output stream sized to the clip's format,
#   3. writes the clip block by block until EOF,
#   4. rewinds the clip so it can be picked again later,
#   5. holds the gate for the cooldown period,
#   6. releases the gate in a finally block, on every exit path.
#
# Failures (no audio device, decode error) are logged and stay inside the
# playback thread; the monitoring loop must never crash because of audio.
# =============================================================================

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Protocol

import numpy as np

from motionsound.audio.gate import PlaybackGate
from motionsound.audio.library import AudioClip, AudioLibrary
from motionsound.config import PLAYBACK_COOLDOWN_SECONDS, PLAYBACK_BUFFER_SECONDS

# Module-level logger.
logger = logging.getLogger(__name__)


class OutputSink(Protocol):
    """What the player needs from an audio output stream."""

    def start(self) -> None: ...

    def write(self, data: np.ndarray) -> object: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


SinkFactory = Callable[[int, int, int], OutputSink]


def open_output_stream(samplerate: int, channels: int, blocksize: int) -> OutputSink:
    """Open the default sounddevice output for a clip's format.

    sounddevice is imported here rather than at module level because it
    loads PortAudio on import, which fails on nodes without an audio
    stack; only the playback thread ever needs it.
    """
    import sounddevice as sd

    return sd.OutputStream(
        samplerate=samplerate,
        channels=channels,
        dtype="float32",
        blocksize=blocksize,
    )


class AudioPlayer:
    """Plays clips from an AudioLibrary, one at a time, behind a PlaybackGate."""

    def __init__(
        self,
        library: AudioLibrary,
        gate: PlaybackGate,
        cooldown: float = PLAYBACK_COOLDOWN_SECONDS,
        buffer_seconds: float = PLAYBACK_BUFFER_SECONDS,
        sink_factory: SinkFactory = open_output_stream,
        rng: random.Random | None = None,
    ) -> None:
        """Set up the player.

        Args:
            library:        Clips to choose from.
            gate:           Shared single-permit gate.
            cooldown:       Seconds the gate stays occupied after a clip.
            buffer_seconds: Length of one block written to the sink.
            sink_factory:   Opens an output stream for
                            (samplerate, channels, blocksize).
            rng:            Random source for clip selection.
        """
        self._library = library
        self._gate = gate
        self._cooldown = cooldown
        self._buffer_seconds = buffer_seconds
        self._sink_factory = sink_factory
        self._rng = rng or random.Random()

        # Set by shutdown(); interrupts both streaming and the cooldown wait.
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def busy(self) -> bool:
        return self._gate.occupied

    # -----------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------

    def trigger(self) -> bool:
        """Start a playback task if the gate is free.

        Returns:
            True if a new task was admitted, False if one is already
            running (or shutdown has begun).
        """
        if self._stop.is_set():
            return False
        if not self._gate.try_acquire():
            return False

        thread = threading.Thread(target=self.play, name="audio-playback", daemon=True)
        try:
            thread.start()
        except RuntimeError:
            self._gate.release()
            raise
        self._thread = thread
        return True

    def play(self) -> None:
        """Body of one playback task. The caller must hold the gate."""
        try:
            clip = self._library.choose(self._rng)
            try:
                self._stream_clip(clip)
            except Exception as exc:
                # Sink init / decode errors stay local to this task.
                logger.error("Audio playback failed for %s: %s", clip.name, exc)
            finally:
                self._rewind(clip)

            # Hold the gate a little longer so short clips can't re-fire
            # on every frame while the subject is still moving.
            if self._cooldown > 0 and not self._stop.is_set():
                logger.debug("Playback cooldown: %.1fs.", self._cooldown)
                self._stop.wait(self._cooldown)
        finally:
            self._gate.release()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the current playback task. True once nothing is running."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop any in-flight playback and wait for its thread.

        The playback thread still releases the gate on its way out.
        """
        self._stop.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            logger.info("Waiting for audio playback to stop …")
            if not self.join(timeout):
                logger.warning("Audio playback thread did not stop within %ss.", timeout)

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    def _stream_clip(self, clip: AudioClip) -> None:
        blocksize = max(1, int(clip.samplerate * self._buffer_seconds))
        sink = self._sink_factory(clip.samplerate, clip.channels, blocksize)
        try:
            sink.start()
            while not self._stop.is_set():
                block = clip.read_block(blocksize)
                if len(block) == 0:
                    break
                sink.write(block)
            sink.stop()
        finally:
            sink.close()

        if self._stop.is_set():
            logger.info("Audio playback interrupted: %s", clip.name)
        else:
            logger.info("Audio played: %s", clip.name)

    @staticmethod
    def _rewind(clip: AudioClip) -> None:
        try:
            clip.rewind()
        except Exception as exc:
            logger.error("Could not rewind %s: %s", clip.name, exc)

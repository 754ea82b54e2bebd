# =============================================================================
# Motion Sound Trigger - Audio Asset Store
# v1.0.0
# =============================================================================
# Loads the clips the player picks from. At startup the audio directory is
# scanned for files matching the extension filter (case-insensitive), and
# each one is opened with soundfile, which gives a seekable decoder plus
# the sample rate and channel count needed to size the output device.
#
# The resulting library is fixed for the lifetime of the process. Fewer
# than MIN_AUDIO_CLIPS usable clips is a fatal configuration error.
# =============================================================================

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from motionsound.config import MIN_AUDIO_CLIPS

# Module-level logger.
logger = logging.getLogger(__name__)


class AudioLibraryError(RuntimeError):
    """Raised when the audio directory does not yield enough usable clips."""


@dataclass
class AudioClip:
    """A decoded clip: its file, an open seekable stream and its format."""

    path: Path
    stream: sf.SoundFile
    samplerate: int
    channels: int

    @property
    def name(self) -> str:
        return self.path.name

    def read_block(self, frames: int) -> np.ndarray:
        """Read up to ``frames`` frames as float32, shape (n, channels)."""
        return self.stream.read(frames, dtype="float32", always_2d=True)

    def rewind(self) -> None:
        """Move the read position back to the first frame."""
        self.stream.seek(0)

    def close(self) -> None:
        if not self.stream.closed:
            self.stream.close()


class AudioLibrary:
    """Immutable collection of clips loaded at startup.

    Usable as a context manager so every decoder is closed on shutdown::

        with load_library(AUDIO_DIR) as library:
            clip = library.choose()
    """

    def __init__(self, clips: Iterable[AudioClip]) -> None:
        self._clips: tuple[AudioClip, ...] = tuple(clips)

    def __len__(self) -> int:
        return len(self._clips)

    def __iter__(self):
        return iter(self._clips)

    def __getitem__(self, index: int) -> AudioClip:
        return self._clips[index]

    def choose(self, rng: random.Random | None = None) -> AudioClip:
        """Pick one clip uniformly at random."""
        return (rng or random).choice(self._clips)

    def close(self) -> None:
        for clip in self._clips:
            clip.close()
        logger.info("Closed %d audio clip(s).", len(self._clips))

    def __enter__(self) -> AudioLibrary:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def find_audio_files(directory: Path, extensions: Iterable[str]) -> list[Path]:
    """List regular files in ``directory`` whose suffix matches, by name.

    Raises:
        FileNotFoundError: If ``directory`` does not exist or is a file.
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Audio directory not found: {directory}")

    wanted = {ext.lower() for ext in extensions}
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in wanted),
        key=lambda p: p.name,
    )


def open_clip(path: Path) -> AudioClip:
    """Open one file for decoding.

    Raises:
        sf.SoundFileError: If the file cannot be decoded.
    """
    stream = sf.SoundFile(str(path))
    return AudioClip(
        path=path,
        stream=stream,
        samplerate=stream.samplerate,
        channels=stream.channels,
    )


def load_library(
    directory: Path,
    extensions: Iterable[str] = (".mp3",),
    min_clips: int = MIN_AUDIO_CLIPS,
) -> AudioLibrary:
    """Scan ``directory`` and decode every matching clip.

    Files that fail to decode are skipped with a warning; only usable
    clips count towards ``min_clips``.

    Raises:
        FileNotFoundError: If the directory is missing.
        AudioLibraryError: If fewer than ``min_clips`` clips are usable.
    """
    paths = find_audio_files(directory, extensions)

    clips: list[AudioClip] = []
    try:
        for path in paths:
            try:
                clips.append(open_clip(path))
            except (sf.SoundFileError, OSError) as exc:
                logger.warning("Skipping unreadable audio file %s: %s", path.name, exc)
    except BaseException:
        for clip in clips:
            clip.close()
        raise

    if not clips:
        raise AudioLibraryError(f"We can't find audio files in {directory}")

    if len(clips) < min_clips:
        for clip in clips:
            clip.close()
        raise AudioLibraryError(
            f"We need at least {min_clips} audio files, found {len(clips)} in {directory}"
        )

    logger.info("We found %d audio files in %s", len(clips), directory)
    for clip in clips:
        logger.debug(
            "  %s: %d Hz, %d channel(s)", clip.name, clip.samplerate, clip.channels
        )
    return AudioLibrary(clips)

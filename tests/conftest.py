# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

FRAME_SHAPE = (240, 320, 3)


def blank_frame(value: int = 40) -> np.ndarray:
    return np.full(FRAME_SHAPE, value, dtype=np.uint8)


def frame_with_blob(x: int, y: int, w: int, h: int, value: int = 255) -> np.ndarray:
    frame = blank_frame()
    frame[y:y + h, x:x + w] = value
    return frame


def write_clip(path: Path, seconds: float = 0.25, samplerate: int = 8000, freq: float = 440.0,
               channels: int = 1) -> Path:
    t = np.arange(int(seconds * samplerate)) / samplerate
    tone = (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    data = np.column_stack([tone] * channels) if channels > 1 else tone
    sf.write(str(path), data, samplerate)
    return path


class FakeSink:
    """Records every block handed to it instead of playing it."""

    def __init__(self, samplerate: int, channels: int, blocksize: int) -> None:
        self.samplerate = samplerate
        self.channels = channels
        self.blocksize = blocksize
        self.blocks: list[np.ndarray] = []
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def write(self, data: np.ndarray) -> None:
        self.blocks.append(data.copy())

    def stop(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    @property
    def samples(self) -> np.ndarray:
        return np.concatenate(self.blocks) if self.blocks else np.empty((0, self.channels))


class SinkRecorder:
    """Sink factory that keeps every sink it opened."""

    def __init__(self) -> None:
        self.sinks: list[FakeSink] = []

    def __call__(self, samplerate: int, channels: int, blocksize: int) -> FakeSink:
        sink = FakeSink(samplerate, channels, blocksize)
        self.sinks.append(sink)
        return sink


@pytest.fixture
def audio_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "audios"
    directory.mkdir()
    return directory


@pytest.fixture
def make_clips(audio_dir: Path):
    def _make(count: int, suffix: str = ".wav") -> list[Path]:
        return [
            write_clip(audio_dir / f"clip{i}{suffix}", freq=220.0 * (i + 1))
            for i in range(count)
        ]

    return _make


@pytest.fixture
def sink_recorder() -> SinkRecorder:
    return SinkRecorder()

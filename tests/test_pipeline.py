"""End-to-end: synthetic scene -> detector -> gate -> player (fake sink)."""
from __future__ import annotations

import pytest

from conftest import blank_frame, frame_with_blob
from motionsound.audio.gate import PlaybackGate
from motionsound.audio.library import load_library
from motionsound.audio.player import AudioPlayer
from motionsound.camera.motion import MotionDetector


@pytest.fixture
def player(make_clips, sink_recorder):
    paths = make_clips(2)
    library = load_library(paths[0].parent, extensions=(".wav",))
    gate = PlaybackGate()
    player = AudioPlayer(library, gate, cooldown=5, sink_factory=sink_recorder)
    yield player, gate
    player.shutdown(timeout=5)
    library.close()


def test_blob_after_quiet_scene_triggers_exactly_once(player, sink_recorder):
    audio, gate = player
    detector = MotionDetector(min_area=3000)

    # Frames 1-10: empty scene. Frame 11: 50x80 bright blob (4000 px).
    # Frame 12: another qualifying blob elsewhere, still inside the cooldown.
    frames = [blank_frame() for _ in range(10)]
    frames.append(frame_with_blob(100, 80, 50, 80))
    frames.append(frame_with_blob(220, 40, 60, 90))

    motion, admitted = [], []
    for frame in frames:
        analysis = detector.detect(frame)
        motion.append(analysis.motion)
        admitted.append(audio.trigger() if analysis.motion else False)

    assert motion[:10] == [False] * 10
    assert motion[10] is True
    assert motion[11] is True
    assert admitted == [False] * 10 + [True, False]
    assert gate.admitted == 1
    assert gate.occupied is True

    audio.shutdown(timeout=5)
    assert gate.admitted == gate.released == 1
    assert len(sink_recorder.sinks) == 1


def _learned_detector(min_area: int = 3000) -> MotionDetector:
    detector = MotionDetector(min_area=min_area)
    for _ in range(10):
        detector.detect(blank_frame())
    return detector


def test_region_of_exactly_threshold_area_triggers(player):
    audio, gate = player

    # A 49x59 blob dilates to 51x61; its contour area is 50 * 60 = 3000.
    analysis = _learned_detector(3000).detect(frame_with_blob(100, 80, 49, 59))

    assert analysis.max_area == 3000
    assert analysis.motion is True
    assert audio.trigger() is True
    assert gate.admitted == 1


def test_region_one_unit_below_threshold_does_not_trigger(player):
    audio, gate = player

    # Clearing two opposite corner pixels survives dilation as two missing
    # corners, each cutting a half-unit triangle: 3000 - 2 * 0.5 = 2999.
    blob = frame_with_blob(100, 80, 49, 59)
    blob[80, 100] = 40
    blob[80 + 58, 100 + 48] = 40

    analysis = _learned_detector(3000).detect(blob)

    assert analysis.max_area == 2999
    assert analysis.motion is False
    assert gate.admitted == 0

from __future__ import annotations

import random

import numpy as np
import pytest

from conftest import write_clip
from motionsound.audio.library import AudioLibraryError, find_audio_files, load_library


def test_load_library_decodes_every_clip(make_clips):
    paths = make_clips(3)
    library = load_library(paths[0].parent, extensions=(".wav",))
    try:
        assert len(library) == 3
        assert [clip.name for clip in library] == ["clip0.wav", "clip1.wav", "clip2.wav"]
        for clip in library:
            assert clip.samplerate == 8000
            assert clip.channels == 1
    finally:
        library.close()


def test_extension_filter_is_case_insensitive(audio_dir):
    write_clip(audio_dir / "LOUD.WAV")
    write_clip(audio_dir / "quiet.wav")
    (audio_dir / "notes.txt").write_text("not audio")
    (audio_dir / "nested.wav").mkdir()

    found = find_audio_files(audio_dir, (".wav",))
    assert [p.name for p in found] == ["LOUD.WAV", "quiet.wav"]


def test_missing_directory_is_fatal(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_library(tmp_path / "nope", extensions=(".wav",))


def test_no_clips_is_fatal(audio_dir):
    with pytest.raises(AudioLibraryError, match="can't find"):
        load_library(audio_dir, extensions=(".wav",))


def test_single_clip_is_fatal(make_clips):
    paths = make_clips(1)
    with pytest.raises(AudioLibraryError, match="at least 2"):
        load_library(paths[0].parent, extensions=(".wav",))


def test_undecodable_files_are_skipped(make_clips, audio_dir):
    make_clips(2)
    (audio_dir / "broken.wav").write_bytes(b"definitely not a wave file")

    with load_library(audio_dir, extensions=(".wav",)) as library:
        assert len(library) == 2
        assert "broken.wav" not in [clip.name for clip in library]


def test_undecodable_files_do_not_count(make_clips, audio_dir):
    make_clips(1)
    (audio_dir / "broken.wav").write_bytes(b"garbage")
    with pytest.raises(AudioLibraryError):
        load_library(audio_dir, extensions=(".wav",))


def test_rewound_clip_replays_identical_audio(make_clips):
    paths = make_clips(2)
    with load_library(paths[0].parent, extensions=(".wav",)) as library:
        clip = library[0]
        first = clip.read_block(clip.stream.frames)
        assert len(clip.read_block(100)) == 0

        clip.rewind()
        second = clip.read_block(clip.stream.frames)

    assert first.shape == (2000, 1)
    assert np.array_equal(first, second)


def test_choose_picks_from_library(make_clips):
    paths = make_clips(3)
    with load_library(paths[0].parent, extensions=(".wav",)) as library:
        rng = random.Random(1234)
        picks = {library.choose(rng).name for _ in range(200)}
    assert picks == {"clip0.wav", "clip1.wav", "clip2.wav"}


def test_close_closes_every_decoder(make_clips):
    paths = make_clips(2)
    library = load_library(paths[0].parent, extensions=(".wav",))
    library.close()
    assert all(clip.stream.closed for clip in library)


def test_unexpected_error_closes_clips_already_opened(monkeypatch, make_clips, audio_dir):
    from motionsound.audio import library as library_module

    make_clips(3)
    opened = []
    real_open = library_module.open_clip

    def flaky_open(path):
        if len(opened) == 2:
            raise ValueError("decoder crashed")
        clip = real_open(path)
        opened.append(clip)
        return clip

    monkeypatch.setattr(library_module, "open_clip", flaky_open)
    with pytest.raises(ValueError):
        load_library(audio_dir, extensions=(".wav",))

    assert len(opened) == 2
    assert all(clip.stream.closed for clip in opened)

# =============================================================================
# Motion Sound Trigger - Configuration Loader
# v1.0.0
# =============================================================================
# Centralizes all configuration by reading environment variables from a .env
# file at the project root. Values defined here are only defaults: main.py
# passes them explicitly into every component constructor, so no module
# depends on ambient global state at runtime.
# =============================================================================

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Resolve project paths
# ---------------------------------------------------------------------------
# BASE_DIR points to the project root (one level above this file's parent).
# The default audio directory is anchored here so the app works regardless
# of the current working directory at launch time.
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# ---------------------------------------------------------------------------
# Load .env file
# ---------------------------------------------------------------------------
_env_path = BASE_DIR / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    # Print to stderr because logging is not configured yet at import time.
    print(
        f"WARNING: .env file not found at {_env_path}. "
        "Falling back to shell environment variables.",
        file=sys.stderr,
    )


# Malformed values are recorded here and reported by validate_config().
_parse_errors: list[str] = []


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: str, kind: type = int):
    raw = os.getenv(name, default)
    try:
        return kind(raw)
    except ValueError:
        _parse_errors.append(f"{name} must be {kind.__name__} (got {raw!r})")
        return kind(default)


# ---------------------------------------------------------------------------
# Video source
# ---------------------------------------------------------------------------
# VIDEO_SOURCE (str): a camera device index ("0") or a path / URL that
#     cv2.VideoCapture understands. Video files are handy for replaying a
#     recorded scene while tuning thresholds.
# ---------------------------------------------------------------------------
VIDEO_SOURCE: str = os.getenv("VIDEO_SOURCE", "0")

# ---------------------------------------------------------------------------
# Audio assets
# ---------------------------------------------------------------------------
# AUDIO_DIR (Path): directory holding the pre-encoded clips.
#
# AUDIO_EXTENSIONS (str): comma-separated extension filter, matched
#     case-insensitively ("song.MP3" is accepted for ".mp3").
#
# MIN_AUDIO_CLIPS (int): the random pick needs a real choice, so fewer
#     usable clips than this is a fatal startup error.
# ---------------------------------------------------------------------------
AUDIO_DIR: Path = Path(os.getenv("AUDIO_DIR", str(BASE_DIR / "audios")))
AUDIO_EXTENSIONS: str = os.getenv("AUDIO_EXTENSIONS", ".mp3")
MIN_AUDIO_CLIPS: int = 2

# ---------------------------------------------------------------------------
# Motion detection tuning
# ---------------------------------------------------------------------------
# MOTION_MIN_AREA (int): minimum contour area in pixels that qualifies as
#     real motion. The comparison is inclusive (area >= MOTION_MIN_AREA).
#
# FOREGROUND_THRESHOLD (int): cut value (0-255) applied to the background
#     subtractor output. Weak responses below it are dropped as noise.
#
# DILATE_KERNEL_SIZE (int): side of the square structuring element used to
#     merge fragments of one object into a single region.
#
# BG_HISTORY / BG_VAR_THRESHOLD / BG_DETECT_SHADOWS: MOG2 parameters. The
#     defaults match OpenCV's own, which adapt slowly to lighting drift.
# ---------------------------------------------------------------------------
MOTION_MIN_AREA: int = _env_number("MOTION_MIN_AREA", "3000")
FOREGROUND_THRESHOLD: int = _env_number("FOREGROUND_THRESHOLD", "25")
DILATE_KERNEL_SIZE: int = _env_number("DILATE_KERNEL_SIZE", "3")
BG_HISTORY: int = _env_number("BG_HISTORY", "500")
BG_VAR_THRESHOLD: float = _env_number("BG_VAR_THRESHOLD", "16", float)
BG_DETECT_SHADOWS: bool = _env_bool("BG_DETECT_SHADOWS", "true")

# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------
# PLAYBACK_COOLDOWN_SECONDS (float): how long the playback gate stays
#     occupied after a clip ends. Stops very short clips from re-firing on
#     every frame while the subject is still in view.
#
# PLAYBACK_BUFFER_SECONDS (float): length of one block written to the audio
#     device. 0.1 s keeps latency low without risking underruns.
# ---------------------------------------------------------------------------
PLAYBACK_COOLDOWN_SECONDS: float = _env_number("PLAYBACK_COOLDOWN_SECONDS", "5", float)
PLAYBACK_BUFFER_SECONDS: float = _env_number("PLAYBACK_BUFFER_SECONDS", "0.1", float)

# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------
# SHOW_WINDOW (bool): open a preview window. Disable on headless nodes;
#     shutdown is then only possible with SIGINT / SIGTERM.
#
# QUIT_KEY (int): key code that ends the loop (27 = ESC).
# ---------------------------------------------------------------------------
SHOW_WINDOW: bool = _env_bool("SHOW_WINDOW", "true")
WINDOW_NAME: str = "Motion Window"
QUIT_KEY: int = 27

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> None:
    """Configure the root logger with a consistent format and level.

    Called once at application startup in main.py. All modules that use
    logging.getLogger(__name__) automatically inherit this configuration.
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def parse_extensions(raw: str) -> tuple[str, ...]:
    """Turn ".mp3, WAV" into (".mp3", ".wav")."""
    extensions = []
    for part in raw.split(","):
        part = part.strip().lower()
        if not part:
            continue
        if not part.startswith("."):
            part = "." + part
        extensions.append(part)
    return tuple(extensions)


def parse_source(raw: str) -> int | str:
    """Camera indices are plain digits; anything else is a path or URL."""
    raw = raw.strip()
    return int(raw) if raw.isdigit() else raw


def validate_config() -> None:
    """Check every tunable and raise early with all problems at once.

    This runs at startup so the operator gets a clear error message
    instead of a cryptic OpenCV assertion on the first frame.
    """
    problems: list[str] = list(_parse_errors)

    if MOTION_MIN_AREA <= 0:
        problems.append(f"MOTION_MIN_AREA must be positive (got {MOTION_MIN_AREA})")
    if not 0 <= FOREGROUND_THRESHOLD <= 255:
        problems.append(
            f"FOREGROUND_THRESHOLD must be within 0-255 (got {FOREGROUND_THRESHOLD})"
        )
    if DILATE_KERNEL_SIZE < 1:
        problems.append(
            f"DILATE_KERNEL_SIZE must be at least 1 (got {DILATE_KERNEL_SIZE})"
        )
    if BG_HISTORY < 1:
        problems.append(f"BG_HISTORY must be at least 1 (got {BG_HISTORY})")
    if PLAYBACK_COOLDOWN_SECONDS < 0:
        problems.append(
            f"PLAYBACK_COOLDOWN_SECONDS cannot be negative (got {PLAYBACK_COOLDOWN_SECONDS})"
        )
    if PLAYBACK_BUFFER_SECONDS <= 0:
        problems.append(
            f"PLAYBACK_BUFFER_SECONDS must be positive (got {PLAYBACK_BUFFER_SECONDS})"
        )
    if not parse_extensions(AUDIO_EXTENSIONS):
        problems.append("AUDIO_EXTENSIONS must name at least one extension")

    if problems:
        raise EnvironmentError(
            "Invalid configuration: " + "; ".join(problems) + ". "
            f"Check your .env file at {_env_path} (see .env.example)."
        )

# =============================================================================
# Motion Sound Trigger - Application Entry Point
# v1.0.0
# =============================================================================
# Orchestrates the full pipeline:
#
#   1. Configure logging and validate configuration from .env.
#   2. Load the audio clips (fatal if fewer than two are usable). This
#      happens before the camera is touched.
#   3. Open the video source.
#   4. Enter the main loop, one iteration per frame:
#      a. Read a frame; stop on end of stream, skip empty frames.
#      b. Update the background model and look for large regions.
#      c. On motion, ask the player to start a clip. The playback gate
#         ignores the request while a clip or its cooldown is running.
#      d. Show the annotated frame and poll for ESC.
#   5. On shutdown (ESC, Ctrl-C, SIGTERM, end of stream) release
#      resources cleanly.
#
# Run with:  python motionsound/main.py   or   motionsound
# =============================================================================

from __future__ import annotations

import sys
import signal
import logging
import argparse
from pathlib import Path

# ---------------------------------------------------------------------------
# sys.path fix so "python motionsound/main.py" works from the project root.
# ---------------------------------------------------------------------------
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from motionsound import config
from motionsound.config import setup_logging, validate_config, parse_extensions, parse_source
from motionsound.camera.stream import CameraStream
from motionsound.camera.motion import MotionDetector
from motionsound.audio.gate import PlaybackGate
from motionsound.audio.library import AudioLibraryError, load_library
from motionsound.audio.player import AudioPlayer
from motionsound.display.window import MotionWindow, annotate

logger = logging.getLogger(__name__)

_shutdown_requested: bool = False

# Seconds to wait for an in-flight clip when shutting down.
_PLAYBACK_JOIN_TIMEOUT: float = 2.0


def _handle_signal(signum: int, _frame) -> None:
    global _shutdown_requested
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, shutting down gracefully …", sig_name)
    _shutdown_requested = True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="motionsound",
        description="Play a random audio clip when the camera sees motion.",
    )
    parser.add_argument(
        "--source",
        default=config.VIDEO_SOURCE,
        help="camera index or video path/URL (default: %(default)s)",
    )
    parser.add_argument(
        "--audio-dir",
        type=Path,
        default=config.AUDIO_DIR,
        help="directory with audio clips (default: %(default)s)",
    )
    parser.add_argument(
        "--no-window",
        action="store_true",
        default=not config.SHOW_WINDOW,
        help="run headless, without the preview window",
    )
    return parser.parse_args(argv)


def run_loop(
    stream: CameraStream,
    detector: MotionDetector,
    player: AudioPlayer,
    window: MotionWindow | None = None,
) -> int:
    """Process frames until the stream ends or shutdown is requested.

    Returns:
        The number of frames analysed.
    """
    frames = 0
    while not _shutdown_requested:
        ok, frame = stream.read()
        if not ok:
            logger.info("Device closed: %s", stream.description)
            break
        if frame is None:
            continue

        analysis = detector.detect(frame)
        frames += 1

        if analysis.motion and player.trigger():
            logger.info("Playback started (largest region=%d px).", analysis.max_area)

        if window is not None:
            window.show(annotate(frame, analysis, detector.min_area, player.busy))
            if window.quit_requested():
                logger.info("Quit key pressed.")
                break

    return frames


def main(argv: list[str] | None = None) -> None:
    """Application entry point: sets up resources and runs the detection loop."""
    global _shutdown_requested

    # ------------------------------------------------------------------
    # Step 1: Logging, arguments and configuration
    # ------------------------------------------------------------------
    setup_logging()
    args = parse_args(argv)

    logger.info("=" * 60)
    logger.info("Motion Sound Trigger v1.0.0 starting up")
    logger.info("=" * 60)

    try:
        validate_config()
    except EnvironmentError as exc:
        logger.critical(str(exc))
        sys.exit(1)

    # ------------------------------------------------------------------
    # Step 2: Audio clips (before the camera is opened)
    # ------------------------------------------------------------------
    try:
        library = load_library(
            args.audio_dir,
            extensions=parse_extensions(config.AUDIO_EXTENSIONS),
            min_clips=config.MIN_AUDIO_CLIPS,
        )
    except (FileNotFoundError, AudioLibraryError) as exc:
        logger.critical(str(exc))
        sys.exit(1)

    # ------------------------------------------------------------------
    # Step 3: Video source
    # ------------------------------------------------------------------
    stream = CameraStream(parse_source(str(args.source)))
    try:
        stream.connect()
    except ConnectionError as exc:
        logger.critical("%s", exc)
        library.close()
        sys.exit(1)

    # ------------------------------------------------------------------
    # Step 4: Pipeline components and main detection loop
    # ------------------------------------------------------------------
    # The finally block below releases every resource, on every exit path.
    _shutdown_requested = False
    previous_handlers: dict = {}
    player: AudioPlayer | None = None
    window: MotionWindow | None = None
    failed = False

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[sig] = signal.signal(sig, _handle_signal)

        detector = MotionDetector(
            min_area=config.MOTION_MIN_AREA,
            threshold_cut=config.FOREGROUND_THRESHOLD,
            kernel_size=config.DILATE_KERNEL_SIZE,
            history=config.BG_HISTORY,
            var_threshold=config.BG_VAR_THRESHOLD,
            detect_shadows=config.BG_DETECT_SHADOWS,
        )
        player = AudioPlayer(
            library,
            PlaybackGate(),
            cooldown=config.PLAYBACK_COOLDOWN_SECONDS,
            buffer_seconds=config.PLAYBACK_BUFFER_SECONDS,
        )
        if not args.no_window:
            window = MotionWindow(config.WINDOW_NAME, config.QUIT_KEY)

        logger.info("Entering detection loop. Press ESC or Ctrl-C to stop.")
        frames = run_loop(stream, detector, player, window)
        logger.info("Processed %d frame(s).", frames)

    except Exception as exc:
        logger.exception("Unexpected error in main loop: %s", exc)
        failed = True

    # ------------------------------------------------------------------
    # Step 5: Cleanup
    # ------------------------------------------------------------------
    finally:
        logger.info("Shutting down …")
        if player is not None:
            player.shutdown(timeout=_PLAYBACK_JOIN_TIMEOUT)
        if window is not None:
            window.close()
        stream.release()
        library.close()
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        logger.info("Motion Sound Trigger stopped. Goodbye.")

    if failed:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Allow running directly with: python motionsound/main.py
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    main()

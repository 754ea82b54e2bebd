# =============================================================================
# Motion Sound Trigger - Preview Window
# v1.0.0
# =============================================================================
# Optional visual feedback: shows each processed frame in an OpenCV window
# with the qualifying motion regions boxed, and polls the keyboard so the
# operator can stop the node with ESC.
# =============================================================================

from __future__ import annotations

import logging

import cv2
import numpy as np

from motionsound.camera.motion import FrameAnalysis
from motionsound.config import WINDOW_NAME, QUIT_KEY

# Module-level logger.
logger = logging.getLogger(__name__)

_COLOR_MOTION = (0, 0, 255)    # BGR red
_COLOR_IDLE = (0, 200, 0)      # BGR green
_COLOR_PLAYING = (0, 165, 255) # BGR orange


def annotate(
    frame: np.ndarray,
    analysis: FrameAnalysis,
    min_area: float,
    playing: bool = False,
) -> np.ndarray:
    """Draw boxes around qualifying regions and a status line on a copy."""
    annotated = frame.copy()
    if annotated.ndim == 2:
        annotated = cv2.cvtColor(annotated, cv2.COLOR_GRAY2BGR)

    for region in analysis.regions:
        if region.area < min_area:
            continue
        x, y, w, h = region.bbox
        cv2.rectangle(annotated, (x, y), (x + w, y + h), _COLOR_MOTION, 2)

    if playing:
        text, color = "Playing", _COLOR_PLAYING
    elif analysis.motion:
        text, color = "Motion detected", _COLOR_MOTION
    else:
        text, color = "Ready", _COLOR_IDLE

    cv2.putText(annotated, text, (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)
    return annotated


class MotionWindow:
    """HighGUI window plus the key poll used to request shutdown."""

    def __init__(self, name: str = WINDOW_NAME, quit_key: int = QUIT_KEY) -> None:
        self._name = name
        self._quit_key = quit_key
        cv2.namedWindow(self._name, cv2.WINDOW_NORMAL)
        logger.info("Preview window opened. Press ESC to stop.")

    def show(self, frame: np.ndarray) -> None:
        cv2.imshow(self._name, frame)

    def quit_requested(self) -> bool:
        """Poll the keyboard for 1 ms; True when the quit key was pressed."""
        key = cv2.waitKey(1)
        return key != -1 and (key & 0xFF) == self._quit_key

    def close(self) -> None:
        try:
            cv2.destroyWindow(self._name)
        except cv2.error:
            # Already closed by the user.
            pass

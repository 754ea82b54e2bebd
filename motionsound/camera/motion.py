# =============================================================================
# Motion Sound Trigger - Motion Detector
# v1.0.0
# =============================================================================
# Implements motion detection against an adaptively learned background.
#
# Algorithm, one pass per frame:
#   1. Feed the frame to a MOG2 background subtractor, which both updates
#      its per-pixel mixture-of-Gaussians model and returns a foreground
#      estimate (0 = background, 127 = shadow, 255 = foreground).
#   2. Threshold the estimate into a binary mask.
#   3. Dilate to merge fragments of one object into one region.
#   4. Find the external contours of the mask.
#   5. If any contour area >= MOTION_MIN_AREA -> motion detected.
#
# Steps 2-5 are plain functions with no hidden state; only the background
# model carries state from one frame to the next.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

from motionsound.config import (
    MOTION_MIN_AREA,
    FOREGROUND_THRESHOLD,
    DILATE_KERNEL_SIZE,
    BG_HISTORY,
    BG_VAR_THRESHOLD,
    BG_DETECT_SHADOWS,
)

# Module-level logger.
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """One connected foreground blob found in a single frame."""

    area: float
    bbox: tuple[int, int, int, int]  # x, y, w, h


@dataclass
class FrameAnalysis:
    motion: bool
    regions: list[Region] = field(default_factory=list)
    max_area: float = 0.0


class BackgroundModel:
    """Adaptive MOG2 model of the static scene.

    The model lives for the whole stream and is never reset by detection
    results; slow lighting drift is absorbed by MOG2's own learning rate.
    """

    def __init__(
        self,
        history: int = BG_HISTORY,
        var_threshold: float = BG_VAR_THRESHOLD,
        detect_shadows: bool = BG_DETECT_SHADOWS,
    ) -> None:
        self._subtractor = cv2.createBackgroundSubtractorMOG2(
            history=history,
            varThreshold=var_threshold,
            detectShadows=detect_shadows,
        )
        self._frames_seen: int = 0

    @property
    def frames_seen(self) -> int:
        return self._frames_seen

    def update(self, frame: np.ndarray) -> np.ndarray:
        """Learn from ``frame`` and return its foreground estimate.

        The first frame only seeds the model: with no history yet, the
        whole scene is reported as background.
        """
        estimate = self._subtractor.apply(frame)
        self._frames_seen += 1

        if self._frames_seen == 1:
            logger.debug("First frame used to seed the background model.")
            return np.zeros(frame.shape[:2], dtype=np.uint8)

        return estimate


def refine(
    estimate: np.ndarray,
    cut: int = FOREGROUND_THRESHOLD,
    kernel_size: int = DILATE_KERNEL_SIZE,
) -> np.ndarray:
    """Binarize a foreground estimate and close small gaps.

    Values below ``cut`` become 0, values at or above it become 255. The
    mask is then dilated once with a square ``kernel_size`` neighbourhood.
    """
    # THRESH_BINARY keeps values strictly greater than its argument, so
    # cut - 1 makes ``cut`` itself count as foreground.
    _, mask = cv2.threshold(estimate, cut - 1, 255, cv2.THRESH_BINARY)

    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
    return cv2.dilate(mask, kernel)


def extract_regions(mask: np.ndarray) -> list[Region]:
    """Return the outermost connected regions of a binary mask.

    RETR_EXTERNAL skips holes inside a blob, so one object with a hollow
    middle is counted once. CHAIN_APPROX_SIMPLE keeps only corner points.
    """
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    regions: list[Region] = []
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        regions.append(Region(area=float(cv2.contourArea(contour)), bbox=(x, y, w, h)))
    return regions


def classify(regions: list[Region], min_area: float = MOTION_MIN_AREA) -> bool:
    """True if any region is at least ``min_area``."""
    return any(region.area >= min_area for region in regions)


class MotionDetector:
    """Detect motion in a stream of frames.

    Typical usage inside the main loop::

        detector = MotionDetector()
        for frame in frames:
            if detector.detect(frame).motion:
                # trigger playback
    """

    def __init__(
        self,
        min_area: int = MOTION_MIN_AREA,
        threshold_cut: int = FOREGROUND_THRESHOLD,
        kernel_size: int = DILATE_KERNEL_SIZE,
        history: int = BG_HISTORY,
        var_threshold: float = BG_VAR_THRESHOLD,
        detect_shadows: bool = BG_DETECT_SHADOWS,
    ) -> None:
        """Initialise the detector with tuning parameters.

        Args:
            min_area:      Minimum contour area (in pixels) that counts as
                           real motion. Default 3000.
            threshold_cut: Cut value applied to the foreground estimate.
            kernel_size:   Side of the dilation structuring element.
            history:       MOG2 history length, in frames.
            var_threshold: MOG2 squared Mahalanobis distance threshold.
            detect_shadows: Whether MOG2 marks shadows (value 127).
        """
        self._min_area = min_area
        self._cut = threshold_cut
        self._kernel_size = kernel_size
        self._background = BackgroundModel(history, var_threshold, detect_shadows)

        logger.info(
            "MotionDetector initialised: min_area=%d px, cut=%d, kernel=%dx%d.",
            self._min_area,
            self._cut,
            self._kernel_size,
            self._kernel_size,
        )

    @property
    def min_area(self) -> int:
        return self._min_area

    def detect(self, frame: np.ndarray) -> FrameAnalysis:
        """Analyse a single BGR (or grayscale) frame for motion."""
        estimate = self._background.update(frame)
        mask = refine(estimate, self._cut, self._kernel_size)
        regions = extract_regions(mask)

        max_area = max((r.area for r in regions), default=0.0)
        motion = classify(regions, self._min_area)

        if motion:
            logger.info(
                "Motion detected: largest region=%d px (threshold=%d px).",
                max_area,
                self._min_area,
            )
        elif regions:
            logger.debug(
                "%d region(s) below threshold, largest=%d px.", len(regions), max_area
            )

        return FrameAnalysis(motion=motion, regions=regions, max_area=max_area)

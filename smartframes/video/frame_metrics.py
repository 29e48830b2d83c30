"""Per-frame focus and inter-frame stillness metrics.

Both metrics are cheap CPU heuristics.  Neither raises on a bad frame: an
unreadable image scores sharpness 0 and motion 0.5 so one corrupt file
cannot abort scoring of a whole video.
"""

import logging
from typing import Any

import cv2
import numpy as np

from smartframes.video.image_io import load_gray

logger = logging.getLogger(__name__)

MOTION_COMPARISON_SIZE = 256
MAX_PIXEL_VALUE = 255.0
MOTION_FALLBACK = 0.5


def laplacian_sharpness(gray: np.ndarray) -> float:
    """Return the standard deviation of the Laplacian response.

    The 4-neighbour kernel ``[[0,1,0],[1,-4,1],[0,1,0]]`` is applied and
    only interior pixels are kept, so border handling never leaks in.
    """
    if gray.ndim != 2 or gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0
    response = cv2.Laplacian(gray, cv2.CV_64F, ksize=1)
    return float(response[1:-1, 1:-1].std())


def compute_sharpness(pixel_source: Any) -> float:
    """Return the sharpness of one frame, or 0.0 if it cannot be read.

    Higher values indicate more high-frequency edge content.
    """
    try:
        return laplacian_sharpness(load_gray(pixel_source))
    except Exception as exc:
        logger.error("Failed to compute sharpness for %r: %s", pixel_source, exc)
        return 0.0


def motion_thumbnail(gray: np.ndarray) -> np.ndarray:
    """Downscale a grayscale frame to the fixed motion comparison size."""
    size = (MOTION_COMPARISON_SIZE, MOTION_COMPARISON_SIZE)
    return cv2.resize(gray, size, interpolation=cv2.INTER_AREA)


def thumbnail_difference(prev_thumb: np.ndarray, curr_thumb: np.ndarray) -> float:
    return float(cv2.absdiff(prev_thumb, curr_thumb).mean()) / MAX_PIXEL_VALUE


def mean_abs_difference(prev_gray: np.ndarray, curr_gray: np.ndarray) -> float:
    """Return the mean absolute intensity difference in [0, 1]."""
    return thumbnail_difference(
        motion_thumbnail(prev_gray), motion_thumbnail(curr_gray)
    )


def compute_motion(prev_source: Any | None, curr_source: Any) -> float:
    """Return the motion between two adjacent frames.

    ``prev_source`` is None for the first frame of a sequence, which has no
    motion by definition.
    """
    if prev_source is None:
        return 0.0
    try:
        return mean_abs_difference(load_gray(prev_source), load_gray(curr_source))
    except Exception as exc:
        logger.error("Failed to compute motion for %r: %s", curr_source, exc)
        return MOTION_FALLBACK

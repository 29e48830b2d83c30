"""Frame scoring: sharpness minus a motion penalty.

Each frame is decoded once on a bounded thread pool, yielding its sharpness
and a small motion thumbnail.  Motion of the pair ``(i-1, i)`` is then taken
from adjacent thumbnails in input order.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import numpy as np

from smartframes.config import Settings
from smartframes.models import Frame, ScoredFrame
from smartframes.video.frame_metrics import (
    MOTION_FALLBACK,
    laplacian_sharpness,
    motion_thumbnail,
    thumbnail_difference,
)
from smartframes.video.image_io import load_gray

logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 10

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class ScoringConfig:
    alpha: float = 0.2
    motion_normalization_factor: float = 255.0
    max_workers: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(
            alpha=settings.alpha,
            motion_normalization_factor=settings.motion_normalization_factor,
            max_workers=settings.scoring_workers,
        )


def combine_scores(
    sharpness: float,
    motion: float,
    alpha: float,
    motion_normalization_factor: float,
) -> float:
    return sharpness - alpha * motion * motion_normalization_factor


@dataclass(frozen=True)
class _Measurement:
    sharpness: float
    # None when the frame could not be read.
    thumbnail: np.ndarray | None


def _measure(pixel_source: Any) -> _Measurement:
    try:
        gray = load_gray(pixel_source)
        return _Measurement(laplacian_sharpness(gray), motion_thumbnail(gray))
    except Exception as exc:
        logger.error("Failed to measure frame %r: %s", pixel_source, exc)
        return _Measurement(0.0, None)


def _motion(prev: _Measurement | None, curr: _Measurement) -> float:
    if prev is None:
        return 0.0
    if prev.thumbnail is None or curr.thumbnail is None:
        return MOTION_FALLBACK
    return thumbnail_difference(prev.thumbnail, curr.thumbnail)


async def score_frames(
    frames: Sequence[Frame],
    config: ScoringConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[ScoredFrame]:
    """Score every frame, preserving input length and order.

    Args:
        frames: Frames in temporal order.
        config: Scoring weights and worker pool size.
        on_progress: Called as ``on_progress(done, total)`` every 10 frames
            and once at completion.
    """
    config = config or ScoringConfig()
    total = len(frames)
    if total == 0:
        return []

    logger.info("Scoring %d frames", total)
    loop = asyncio.get_running_loop()
    done = 0

    def _report() -> None:
        nonlocal done
        done += 1
        if on_progress is not None and (done % _PROGRESS_EVERY == 0 or done == total):
            on_progress(done, total)

    pool = ThreadPoolExecutor(max_workers=max(1, config.max_workers))

    async def _measure_one(frame: Frame) -> _Measurement:
        result = await loop.run_in_executor(pool, _measure, frame.pixel_source)
        _report()
        return result

    try:
        measurements = await asyncio.gather(*(_measure_one(f) for f in frames))
    finally:
        # Never block the event loop on outstanding reads.
        pool.shutdown(wait=False, cancel_futures=True)

    scored = []
    prev: _Measurement | None = None
    for frame, measurement in zip(frames, measurements):
        motion = _motion(prev, measurement)
        scored.append(
            ScoredFrame(
                frame=frame,
                sharpness=measurement.sharpness,
                motion=motion,
                combined_score=combine_scores(
                    measurement.sharpness,
                    motion,
                    config.alpha,
                    config.motion_normalization_factor,
                ),
            )
        )
        prev = measurement

    logger.info("Frame scoring completed (%d frames)", total)
    return scored

"""Candidate selection with temporal diversity.

Frames are ranked by combined score and picked greedily, skipping any frame
closer than ``min_temporal_gap`` seconds to one already picked.  If that
leaves fewer than ``top_k`` frames, the gap is dropped and the best
remaining frames fill the set.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from smartframes.config import Settings
from smartframes.models import ScoredFrame

logger = logging.getLogger(__name__)

SelectionPolicy = Literal["strict", "permissive"]

DEFAULT_MIN_SHARPNESS = 5.0

UNUSABLE_NO_FRAMES = "no_frames"
UNUSABLE_BELOW_THRESHOLD = "below_sharpness_threshold"


@dataclass(frozen=True)
class SelectionConfig:
    top_k: int = 24
    min_temporal_gap: float = 0.3
    policy: SelectionPolicy = "permissive"
    # Only consulted by the strict policy.
    min_sharpness_threshold: float = DEFAULT_MIN_SHARPNESS

    @classmethod
    def from_settings(cls, settings: Settings) -> "SelectionConfig":
        return cls(
            top_k=settings.top_k,
            min_temporal_gap=settings.min_temporal_gap,
            policy=settings.selection_policy,
            min_sharpness_threshold=settings.min_sharpness_threshold,
        )


@dataclass
class CandidateSet:
    frames: list[ScoredFrame] = field(default_factory=list)
    unusable_reason: str | None = None
    # Frames added after the temporal gap was relaxed.
    relaxed_frame_ids: set[str] = field(default_factory=set)
    rejected_count: int = 0

    @property
    def unusable(self) -> bool:
        return self.unusable_reason is not None

    def __len__(self) -> int:
        return len(self.frames)


def _eligible(
    scored: Sequence[ScoredFrame], config: SelectionConfig
) -> list[ScoredFrame]:
    if config.policy != "strict":
        return list(scored)

    threshold = config.min_sharpness_threshold
    eligible = [f for f in scored if f.sharpness >= threshold]
    rejected = len(scored) - len(eligible)
    if rejected:
        logger.info(
            "Rejected %d blurry frames (sharpness < %.1f)", rejected, threshold
        )
    return eligible


def _by_time(frames: list[ScoredFrame]) -> list[ScoredFrame]:
    return sorted(frames, key=lambda f: (f.timestamp, f.frame_id))


def select_candidates(
    scored: Sequence[ScoredFrame], config: SelectionConfig | None = None
) -> CandidateSet:
    """Reduce a scored sequence to at most ``top_k`` temporally diverse frames.

    Under the strict policy frames below the sharpness threshold are excluded
    first; if none survive the result is marked unusable and is empty.
    The returned frames are ordered by timestamp.
    """
    config = config or SelectionConfig()

    if not scored:
        logger.warning("No frames available for selection")
        return CandidateSet(unusable_reason=UNUSABLE_NO_FRAMES)

    eligible = _eligible(scored, config)
    rejected = len(scored) - len(eligible)

    if not eligible:
        logger.warning(
            "All %d frames fell below the sharpness threshold, video unusable",
            len(scored),
        )
        return CandidateSet(
            unusable_reason=UNUSABLE_BELOW_THRESHOLD, rejected_count=rejected
        )

    top_k = max(0, config.top_k)
    logger.info("%d frames available for selection", len(eligible))

    if top_k >= len(eligible):
        return CandidateSet(frames=_by_time(eligible), rejected_count=rejected)

    # Stable sort: equal scores keep temporal order.
    ranked = sorted(eligible, key=lambda f: f.combined_score, reverse=True)

    selected: list[ScoredFrame] = []
    taken: set[int] = set()
    gap = config.min_temporal_gap

    for idx, frame in enumerate(ranked):
        if len(selected) >= top_k:
            break
        if gap > 0 and any(
            abs(s.timestamp - frame.timestamp) < gap for s in selected
        ):
            continue
        selected.append(frame)
        taken.add(idx)

    relaxed: set[str] = set()
    if len(selected) < top_k:
        logger.info("Relaxing temporal constraint for more candidates")
        for idx, frame in enumerate(ranked):
            if len(selected) >= top_k:
                break
            if idx not in taken:
                selected.append(frame)
                taken.add(idx)
                relaxed.add(frame.frame_id)

    logger.info("%d candidates selected", len(selected))
    return CandidateSet(
        frames=_by_time(selected),
        relaxed_frame_ids=relaxed,
        rejected_count=rejected,
    )


def select_best_frame_per_second(
    scored: Sequence[ScoredFrame],
    min_sharpness_threshold: float = DEFAULT_MIN_SHARPNESS,
) -> list[ScoredFrame]:
    """Return the highest-scoring sharp-enough frame from each second of video."""
    best: dict[int, ScoredFrame] = {}
    usable = 0
    for frame in scored:
        if frame.sharpness < min_sharpness_threshold:
            continue
        usable += 1
        second = math.floor(frame.timestamp)
        current = best.get(second)
        if current is None or frame.combined_score > current.combined_score:
            best[second] = frame

    selected = _by_time(list(best.values()))
    logger.info(
        "Best frame per second selected: %d of %d usable (%d total)",
        len(selected),
        usable,
        len(scored),
    )
    return selected


def prepare_candidate_metadata(frames: Sequence[ScoredFrame]) -> list[dict[str, Any]]:
    """Metadata rows sent to the classifier alongside each image."""
    return [
        {
            "frame_id": f.frame_id,
            "timestamp_sec": round(f.timestamp, 2),
            "sequence_position": position,
            "total_candidates": len(frames),
        }
        for position, f in enumerate(frames, start=1)
    ]

"""Video quality summary and, under the strict policy, a usability verdict."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from smartframes.models import ScoredFrame, VideoMetadata
from smartframes.video.candidate_selector import DEFAULT_MIN_SHARPNESS

LOW_SHARPNESS_THRESHOLD = DEFAULT_MIN_SHARPNESS
HIGH_MOTION_THRESHOLD = 0.2
LOW_MOTION_THRESHOLD = 0.1
MIN_LOW_MOTION_FRAMES = 5

TIP_LIGHTING = "Better lighting would improve frame quality"
TIP_SLOWER = "Slower rotation would give sharper frames"
TIP_PAUSE = "Brief pauses at each angle help capture clearer frames"
TIP_GOOD = "Video quality is good!"

Rating = Literal["excellent", "usable", "poor"]


@dataclass(frozen=True)
class QualityReport:
    video: VideoMetadata
    total_frames: int
    average_sharpness: float
    max_sharpness: float
    average_motion: float
    low_motion_frames: int
    tips: list[str] = field(default_factory=list)
    status: str = "processed"  # "processed" | "unusable" | "no_frames"
    rating: Rating | None = None  # strict policy only

    @property
    def usable(self) -> bool:
        return self.rating != "poor" and self.status != "unusable"

    def to_dict(self) -> dict[str, Any]:
        return {
            "video": {
                "filename": self.video.filename,
                "duration_sec": self.video.duration_sec,
            },
            "analysis": {
                "total_frames_analyzed": self.total_frames,
                "average_sharpness": self.average_sharpness,
                "max_sharpness": self.max_sharpness,
                "average_motion": self.average_motion,
                "low_motion_frames": self.low_motion_frames,
            },
            "tips_for_better_results": list(self.tips),
            "status": self.status,
            "rating": self.rating,
        }


def _rate(
    avg_sharpness: float,
    max_sharpness: float,
    avg_motion: float,
    low_motion: int,
    threshold: float,
) -> Rating:
    if max_sharpness < threshold:
        return "poor"
    if (
        avg_sharpness >= threshold
        and avg_motion <= HIGH_MOTION_THRESHOLD
        and low_motion >= MIN_LOW_MOTION_FRAMES
    ):
        return "excellent"
    return "usable"


def generate_quality_report(
    scored: Sequence[ScoredFrame],
    video: VideoMetadata,
    policy: Literal["strict", "permissive"] = "permissive",
    min_sharpness_threshold: float = DEFAULT_MIN_SHARPNESS,
) -> QualityReport:
    """Summarize a full scored sequence.

    The permissive report is informational only.  The strict report adds a
    rating: "poor" when no frame reaches ``min_sharpness_threshold``.
    """
    strict = policy == "strict"
    threshold = min_sharpness_threshold

    if not scored:
        return QualityReport(
            video=video,
            total_frames=0,
            average_sharpness=0.0,
            max_sharpness=0.0,
            average_motion=0.0,
            low_motion_frames=0,
            status="no_frames",
            rating="poor" if strict else None,
        )

    sharpness = [f.sharpness for f in scored]
    avg_sharpness = sum(sharpness) / len(sharpness)
    max_sharpness = max(sharpness)
    avg_motion = sum(f.motion for f in scored) / len(scored)
    low_motion = sum(1 for f in scored if f.motion < LOW_MOTION_THRESHOLD)

    tip_threshold = threshold if strict else LOW_SHARPNESS_THRESHOLD
    tips: list[str] = []
    if avg_sharpness < tip_threshold:
        tips.append(TIP_LIGHTING)
    if avg_motion > HIGH_MOTION_THRESHOLD:
        tips.append(TIP_SLOWER)
    if low_motion < MIN_LOW_MOTION_FRAMES:
        tips.append(TIP_PAUSE)

    rating: Rating | None = None
    status = "processed"
    if strict:
        rating = _rate(avg_sharpness, max_sharpness, avg_motion, low_motion, threshold)
        if rating == "poor":
            status = "unusable"
            # A rejected video always tells the user how to reshoot.
            for tip in (TIP_LIGHTING, TIP_PAUSE):
                if tip not in tips:
                    tips.append(tip)
            tips.sort(key=[TIP_LIGHTING, TIP_SLOWER, TIP_PAUSE].index)
    elif not tips:
        tips.append(TIP_GOOD)

    return QualityReport(
        video=video,
        total_frames=len(scored),
        average_sharpness=round(avg_sharpness, 1),
        max_sharpness=round(max_sharpness, 1),
        average_motion=round(avg_motion, 2),
        low_motion_frames=low_motion,
        tips=tips,
        status=status,
        rating=rating,
    )

"""End-to-end run: score → select → report → tournament → finalize.

One ``run_pipeline`` call walks these states exactly once, in order::

    SCORED → (UNUSABLE | CANDIDATES_SELECTED) → BATCHES_DISPATCHED
           → VARIANTS_AGGREGATED → FINALIZED

``UNUSABLE`` is terminal and only reachable under the strict policy; the
classifier is never called in that case.
"""

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from smartframes.classifier.base import Classifier
from smartframes.config import Settings
from smartframes.models import FinalFrame, Frame, ScoredFrame, VideoMetadata
from smartframes.tournament import (
    AggregationResult,
    TournamentConfig,
    aggregate_variants,
)
from smartframes.video.candidate_selector import (
    CandidateSet,
    SelectionConfig,
    select_candidates,
)
from smartframes.video.frame_scorer import (
    ProgressCallback,
    ScoringConfig,
    score_frames,
)
from smartframes.video.quality_report import QualityReport, generate_quality_report

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    SCORED = "scored"
    UNUSABLE = "unusable"
    CANDIDATES_SELECTED = "candidates_selected"
    BATCHES_DISPATCHED = "batches_dispatched"
    VARIANTS_AGGREGATED = "variants_aggregated"
    FINALIZED = "finalized"


@dataclass
class PipelineResult:
    state: PipelineState
    history: list[PipelineState]
    scored: list[ScoredFrame]
    candidates: CandidateSet
    report: QualityReport
    aggregation: AggregationResult = field(default_factory=AggregationResult)

    @property
    def frames(self) -> list[FinalFrame]:
        return self.aggregation.frames

    @property
    def unusable(self) -> bool:
        return self.state is PipelineState.UNUSABLE


async def run_pipeline(
    frames: Sequence[Frame],
    video: VideoMetadata,
    classifier: Classifier,
    settings: Settings,
    on_progress: ProgressCallback | None = None,
) -> PipelineResult:
    """Turn extracted frames into deduplicated best frames per variant."""
    history: list[PipelineState] = []

    def _enter(state: PipelineState) -> None:
        history.append(state)
        logger.debug("Pipeline state → %s", state.value)

    scored = await score_frames(
        frames, ScoringConfig.from_settings(settings), on_progress
    )
    _enter(PipelineState.SCORED)

    selection = SelectionConfig.from_settings(settings)
    candidates = select_candidates(scored, selection)
    report = generate_quality_report(
        scored,
        video,
        policy=selection.policy,
        min_sharpness_threshold=selection.min_sharpness_threshold,
    )

    if selection.policy == "strict" and candidates.unusable:
        _enter(PipelineState.UNUSABLE)
        logger.warning(
            "Video %s is unusable (%s): %s",
            video.filename,
            candidates.unusable_reason,
            "; ".join(report.tips),
        )
        return PipelineResult(
            state=PipelineState.UNUSABLE,
            history=history,
            scored=scored,
            candidates=candidates,
            report=report,
        )

    _enter(PipelineState.CANDIDATES_SELECTED)

    _enter(PipelineState.BATCHES_DISPATCHED)
    aggregation = await aggregate_variants(
        candidates.frames,
        classifier,
        video,
        TournamentConfig.from_settings(settings),
    )
    _enter(PipelineState.VARIANTS_AGGREGATED)

    if aggregation.all_failed:
        logger.warning(
            "No variants discovered for %s; %d raw candidates remain as fallback",
            video.filename,
            len(candidates),
        )

    _enter(PipelineState.FINALIZED)
    return PipelineResult(
        state=PipelineState.FINALIZED,
        history=history,
        scored=scored,
        candidates=candidates,
        report=report,
        aggregation=aggregation,
    )

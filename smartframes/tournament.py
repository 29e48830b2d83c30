"""Variant tournament: best frame per (product, angle) across classifier batches.

The classifier only accepts a bounded number of images per call, so the
candidate set is split into batches that are classified one after another.
Each batch nominates winners per ``VariantKey``; ``merge_batch`` folds those
into a table that keeps only the highest score seen for every key.

Merging uses a strict ``>`` comparison, so on equal scores the record from
the earlier batch stays.  Batches are always dispatched in timestamp order,
which makes that tie-break deterministic for a given candidate set.

A failed batch (transport error, timeout, invalid response) is logged and
dropped; it never aborts the tournament.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from smartframes.classifier.base import (
    ClassificationRequest,
    ClassificationResult,
    Classifier,
)
from smartframes.config import Settings
from smartframes.models import (
    FinalFrame,
    ScoredFrame,
    VariantKey,
    VariantRecord,
    VideoMetadata,
)
from smartframes.video.candidate_selector import prepare_candidate_metadata
from smartframes.video.image_io import encode_png_b64

logger = logging.getLogger(__name__)

VariantTable = dict[VariantKey, VariantRecord]


@dataclass(frozen=True)
class TournamentConfig:
    batch_size: int = 20
    inter_batch_delay_s: float = 1.0
    # None or <= 0 disables the per-batch timeout.
    batch_timeout_s: float | None = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TournamentConfig":
        return cls(
            batch_size=settings.batch_size,
            inter_batch_delay_s=settings.inter_batch_delay_s,
            batch_timeout_s=settings.batch_timeout_s,
        )


@dataclass
class AggregationResult:
    table: VariantTable = field(default_factory=dict)
    frames: list[FinalFrame] = field(default_factory=list)
    total_batches: int = 0
    failed_batches: int = 0
    product_category: str | None = None

    @property
    def all_failed(self) -> bool:
        return self.total_batches > 0 and self.failed_batches == self.total_batches

    @property
    def variants_discovered(self) -> int:
        return len(self.table)


def partition_batches(
    candidates: Sequence[ScoredFrame], batch_size: int
) -> list[list[ScoredFrame]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    ordered = sorted(candidates, key=lambda f: (f.timestamp, f.frame_id))
    return [ordered[i : i + batch_size] for i in range(0, len(ordered), batch_size)]


def build_request(
    batch: Sequence[ScoredFrame], video: VideoMetadata
) -> ClassificationRequest:
    return ClassificationRequest(
        images=[encode_png_b64(f.pixel_source) for f in batch],
        metadata=prepare_candidate_metadata(batch),
        video_context=video.to_context(),
    )


def batch_records(
    result: ClassificationResult, batch: Sequence[ScoredFrame]
) -> list[tuple[VariantKey, VariantRecord]]:
    """Turn one batch's recommendations into ``(key, record)`` pairs.

    Recommendations with no frame, or naming a frame that was not in the
    batch, are skipped.
    """
    in_batch = {f.frame_id for f in batch}
    records: list[tuple[VariantKey, VariantRecord]] = []

    for shot in result.recommended_shots:
        key = VariantKey(shot.product_id, shot.angle_id)
        if shot.frame_id is None:
            logger.debug("No suitable frame for variant %s in this batch", key.label)
            continue
        if shot.frame_id not in in_batch:
            logger.warning(
                "Recommended frame %s for %s not found in batch",
                shot.frame_id,
                key.label,
            )
            continue
        score = shot.score if shot.score is not None else 0.0
        records.append(
            (key, VariantRecord(shot.frame_id, float(score), shot.description))
        )
    return records


def merge_batch(
    table: Mapping[VariantKey, VariantRecord],
    records: Iterable[tuple[VariantKey, VariantRecord]],
) -> VariantTable:
    """Fold one batch into the table, keeping the max score per key.

    Returns a new table; ``table`` is not modified.
    """
    merged = dict(table)
    for key, record in records:
        current = merged.get(key)
        if current is None or record.score > current.score:
            merged[key] = record
    return merged


def finalize_variants(
    table: Mapping[VariantKey, VariantRecord],
    candidates: Sequence[ScoredFrame],
) -> list[FinalFrame]:
    """Deduplicate the winners by frame, collecting every variant each serves."""
    by_id = {f.frame_id: f for f in candidates}
    finals: dict[str, FinalFrame] = {}

    for key, record in table.items():
        source = by_id.get(record.frame_id)
        if source is None:
            logger.warning(
                "Variant %s points at unknown frame %s", key.label, record.frame_id
            )
            continue
        final = finals.get(record.frame_id)
        if final is None:
            final = FinalFrame(
                frame_id=record.frame_id,
                timestamp=source.timestamp,
                pixel_source=source.pixel_source,
                score=record.score,
                description=record.description,
            )
            finals[record.frame_id] = final
        final.variants.append(key)
        final.score = max(final.score, record.score)
        if not final.description:
            final.description = record.description

    for final in finals.values():
        if len(final.variants) > 1:
            logger.debug(
                "Frame %s covers %s", final.frame_id, ", ".join(final.labels)
            )
    return sorted(finals.values(), key=lambda f: (f.timestamp, f.frame_id))


async def _classify_batch(
    classifier: Classifier,
    batch: Sequence[ScoredFrame],
    video: VideoMetadata,
    timeout: float | None,
) -> ClassificationResult:
    request = build_request(batch, video)
    call = classifier.classify(request)
    if timeout is not None and timeout > 0:
        return await asyncio.wait_for(call, timeout=timeout)
    return await call


async def aggregate_variants(
    candidates: Sequence[ScoredFrame],
    classifier: Classifier,
    video: VideoMetadata,
    config: TournamentConfig | None = None,
) -> AggregationResult:
    """Run the tournament over ``candidates`` and return the merged table.

    Never raises for classifier failures: if every batch fails the result
    has an empty table and ``all_failed`` set.
    """
    config = config or TournamentConfig()
    batches = partition_batches(candidates, config.batch_size)

    table: VariantTable = {}
    failed = 0
    category: str | None = None

    logger.info(
        "Classifying %d candidates in %d batches", len(candidates), len(batches)
    )

    for idx, batch in enumerate(batches):
        try:
            result = await _classify_batch(
                classifier, batch, video, config.batch_timeout_s
            )
            records = batch_records(result, batch)
        except Exception as exc:
            failed += 1
            logger.error(
                "Batch %d/%d classification failed (frames=%s): %r",
                idx + 1,
                len(batches),
                [f.frame_id for f in batch],
                exc,
            )
        else:
            table = merge_batch(table, records)
            if category is None and result.product_category:
                category = result.product_category
                logger.info("Product category detected: %s", category)

        if idx < len(batches) - 1 and config.inter_batch_delay_s > 0:
            await asyncio.sleep(config.inter_batch_delay_s)

    if batches and failed == len(batches):
        logger.error("All %d classification batches failed", len(batches))
    elif not table:
        logger.warning(
            "No variants discovered (%d/%d batches failed)", failed, len(batches)
        )

    frames = finalize_variants(table, candidates)
    logger.info(
        "Tournament complete: %d candidates → %d variants in %d frames "
        "(%d/%d batches failed)",
        len(candidates),
        len(table),
        len(frames),
        failed,
        len(batches),
    )
    return AggregationResult(
        table=table,
        frames=frames,
        total_batches=len(batches),
        failed_batches=failed,
        product_category=category,
    )

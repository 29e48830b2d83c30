"""Unit tests for smartframes/video/candidate_selector.py."""

from itertools import combinations

import pytest

from smartframes.models import Frame, ScoredFrame
from smartframes.video.candidate_selector import (
    UNUSABLE_BELOW_THRESHOLD,
    UNUSABLE_NO_FRAMES,
    SelectionConfig,
    prepare_candidate_metadata,
    select_best_frame_per_second,
    select_candidates,
)
from smartframes.video.frame_scorer import combine_scores


def make_scored(
    t: float,
    sharpness: float,
    motion: float = 0.0,
    alpha: float = 0.5,
    frame_id: str | None = None,
) -> ScoredFrame:
    return ScoredFrame(
        frame=Frame(
            frame_id=frame_id or f"frame_{int(round(t * 100)):05d}",
            timestamp=t,
            pixel_source=None,
        ),
        sharpness=sharpness,
        motion=motion,
        combined_score=combine_scores(sharpness, motion, alpha, 255.0),
    )


def _times(candidates) -> list[float]:
    return [f.timestamp for f in candidates.frames]


# ---------------------------------------------------------------------------
# Worked example
# ---------------------------------------------------------------------------


def test_reference_scenario():
    frames = [
        make_scored(0.0, 10, 0.0),
        make_scored(0.2, 80, 0.05),
        make_scored(0.4, 75, 0.6),
    ]
    assert [f.combined_score for f in frames] == pytest.approx([10, 73.625, -1.5])

    result = select_candidates(frames, SelectionConfig(top_k=2, min_temporal_gap=0.1))

    assert _times(result) == [0.0, 0.2]
    assert result.unusable_reason is None
    assert result.relaxed_frame_ids == set()


# ---------------------------------------------------------------------------
# Greedy selection and relaxation
# ---------------------------------------------------------------------------


def test_temporal_gap_is_respected_without_relaxation():
    frames = [make_scored(i * 0.1, 100 - i) for i in range(20)]
    result = select_candidates(frames, SelectionConfig(top_k=4, min_temporal_gap=0.5))

    assert len(result) == 4
    assert result.relaxed_frame_ids == set()
    for a, b in combinations(_times(result), 2):
        assert abs(a - b) >= 0.5 - 1e-9


def test_relaxation_fills_up_to_top_k():
    # Only two frames can be 0.9s apart within a 1.2s clip.
    frames = [make_scored(i * 0.2, 50 + i) for i in range(7)]
    result = select_candidates(frames, SelectionConfig(top_k=4, min_temporal_gap=0.9))

    assert len(result) == 4
    assert len(result.relaxed_frame_ids) == 2
    non_relaxed = [f for f in result.frames if f.frame_id not in result.relaxed_frame_ids]
    for a, b in combinations(non_relaxed, 2):
        assert abs(a.timestamp - b.timestamp) >= 0.9


def test_relaxation_adds_highest_scoring_remaining():
    frames = [
        make_scored(0.0, 90, frame_id="a"),
        make_scored(0.1, 80, frame_id="b"),
        make_scored(0.2, 10, frame_id="c"),
        make_scored(0.3, 70, frame_id="d"),
    ]
    result = select_candidates(frames, SelectionConfig(top_k=2, min_temporal_gap=5.0))

    assert [f.frame_id for f in result.frames] == ["a", "b"]
    assert result.relaxed_frame_ids == {"b"}


def test_result_is_sorted_by_timestamp():
    frames = [make_scored(t, s) for t, s in [(0.0, 1), (1.0, 50), (2.0, 20), (3.0, 90)]]
    result = select_candidates(frames, SelectionConfig(top_k=3, min_temporal_gap=0.5))
    assert _times(result) == [1.0, 2.0, 3.0]


def test_top_k_at_least_eligible_returns_all():
    frames = [make_scored(0.0, 5), make_scored(0.01, 9), make_scored(0.02, 7)]
    result = select_candidates(frames, SelectionConfig(top_k=3, min_temporal_gap=10))

    assert _times(result) == [0.0, 0.01, 0.02]
    assert result.relaxed_frame_ids == set()


def test_non_positive_gap_picks_top_scores():
    frames = [make_scored(i * 0.01, s) for i, s in enumerate([5, 60, 61, 2, 59])]
    result = select_candidates(frames, SelectionConfig(top_k=3, min_temporal_gap=0))

    assert sorted(f.sharpness for f in result.frames) == [59, 60, 61]
    assert result.relaxed_frame_ids == set()


def test_size_never_exceeds_top_k():
    frames = [make_scored(i * 0.05, i % 7) for i in range(50)]
    for k in (0, 1, 5, 49, 50, 80):
        result = select_candidates(frames, SelectionConfig(top_k=k, min_temporal_gap=0.3))
        assert len(result) == min(k, len(frames))


def test_equal_scores_keep_temporal_order():
    frames = [make_scored(float(i), 10, frame_id=f"f{i}") for i in range(4)]
    result = select_candidates(frames, SelectionConfig(top_k=2, min_temporal_gap=0))
    assert [f.frame_id for f in result.frames] == ["f0", "f1"]


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def test_empty_input_reports_no_frames():
    result = select_candidates([], SelectionConfig())
    assert result.frames == []
    assert result.unusable_reason == UNUSABLE_NO_FRAMES


def test_strict_excludes_blurry_frames():
    frames = [make_scored(0.0, 2), make_scored(1.0, 20), make_scored(2.0, 4.9)]
    config = SelectionConfig(top_k=5, policy="strict", min_sharpness_threshold=5)
    result = select_candidates(frames, config)

    assert _times(result) == [1.0]
    assert result.rejected_count == 2


def test_strict_all_blurry_is_unusable():
    frames = [make_scored(i * 0.5, 1.0) for i in range(6)]
    config = SelectionConfig(top_k=3, policy="strict", min_sharpness_threshold=5)
    result = select_candidates(frames, config)

    assert result.frames == []
    assert result.unusable
    assert result.unusable_reason == UNUSABLE_BELOW_THRESHOLD
    assert result.rejected_count == 6


def test_permissive_keeps_blurry_frames():
    frames = [make_scored(i * 0.5, 1.0) for i in range(6)]
    config = SelectionConfig(top_k=3, policy="permissive", min_sharpness_threshold=5)
    result = select_candidates(frames, config)

    assert len(result) == 3
    assert not result.unusable


# ---------------------------------------------------------------------------
# Best frame per second
# ---------------------------------------------------------------------------


def test_best_frame_per_second():
    frames = [
        make_scored(0.1, 10),
        make_scored(0.6, 30),
        make_scored(1.2, 25),
        make_scored(1.9, 2),
        make_scored(3.0, 1),
    ]
    selected = select_best_frame_per_second(frames, min_sharpness_threshold=5)
    assert [f.timestamp for f in selected] == [0.6, 1.2]


def test_best_frame_per_second_default_threshold_drops_blurry():
    frames = [make_scored(0.5, 1), make_scored(1.5, 4.9), make_scored(2.5, 5)]
    assert [f.timestamp for f in select_best_frame_per_second(frames)] == [2.5]


def test_best_frame_per_second_zero_threshold_keeps_all():
    frames = [make_scored(0.5, 1), make_scored(2.5, 0)]
    selected = select_best_frame_per_second(frames, min_sharpness_threshold=0.0)
    assert len(selected) == 2


# ---------------------------------------------------------------------------
# Classifier metadata
# ---------------------------------------------------------------------------


def test_prepare_candidate_metadata():
    frames = [make_scored(0.123, 1, frame_id="a"), make_scored(1.456, 1, frame_id="b")]
    assert prepare_candidate_metadata(frames) == [
        {
            "frame_id": "a",
            "timestamp_sec": 0.12,
            "sequence_position": 1,
            "total_candidates": 2,
        },
        {
            "frame_id": "b",
            "timestamp_sec": 1.46,
            "sequence_position": 2,
            "total_candidates": 2,
        },
    ]

"""Unit tests for smartframes/video/quality_report.py."""

from smartframes.models import Frame, ScoredFrame, VideoMetadata
from smartframes.video.candidate_selector import SelectionConfig, select_candidates
from smartframes.video.quality_report import (
    TIP_GOOD,
    TIP_LIGHTING,
    TIP_PAUSE,
    TIP_SLOWER,
    generate_quality_report,
)

VIDEO = VideoMetadata(filename="mug.mp4", duration_sec=12.5, width=1920, height=1080)


def make_scored(i: int, sharpness: float, motion: float) -> ScoredFrame:
    return ScoredFrame(
        frame=Frame(frame_id=f"frame_{i:05d}", timestamp=i * 0.2, pixel_source=None),
        sharpness=sharpness,
        motion=motion,
        combined_score=sharpness - 0.2 * motion * 255,
    )


def _steady(n: int = 10, sharpness: float = 40.0) -> list[ScoredFrame]:
    return [make_scored(i, sharpness, 0.02) for i in range(n)]


def test_empty_sequence_reports_zeros():
    report = generate_quality_report([], VIDEO)

    assert report.total_frames == 0
    assert report.average_sharpness == 0.0
    assert report.max_sharpness == 0.0
    assert report.average_motion == 0.0
    assert report.low_motion_frames == 0
    assert report.tips == []
    assert report.status == "no_frames"
    assert report.rating is None


def test_empty_sequence_strict_is_poor():
    report = generate_quality_report([], VIDEO, policy="strict", min_sharpness_threshold=5)
    assert report.rating == "poor"
    assert report.tips == []


def test_statistics():
    frames = [make_scored(0, 10.04, 0.0), make_scored(1, 20.0, 0.3), make_scored(2, 30.0, 0.05)]
    report = generate_quality_report(frames, VIDEO)

    assert report.total_frames == 3
    assert report.average_sharpness == 20.0
    assert report.max_sharpness == 30.0
    assert report.average_motion == 0.12
    assert report.low_motion_frames == 2


def test_permissive_good_video():
    report = generate_quality_report(_steady(), VIDEO)

    assert report.tips == [TIP_GOOD]
    assert report.status == "processed"
    assert report.rating is None


def test_permissive_tips_in_order():
    frames = [make_scored(i, 1.0, 0.5) for i in range(3)]
    report = generate_quality_report(frames, VIDEO)

    assert report.tips == [TIP_LIGHTING, TIP_SLOWER, TIP_PAUSE]
    assert report.status == "processed"


def test_strict_excellent():
    report = generate_quality_report(_steady(), VIDEO, policy="strict", min_sharpness_threshold=5)
    assert report.rating == "excellent"
    assert report.status == "processed"
    assert report.tips == []
    assert report.usable


def test_strict_usable_when_few_pauses():
    frames = [make_scored(i, 40.0, 0.15) for i in range(10)]
    report = generate_quality_report(frames, VIDEO, policy="strict", min_sharpness_threshold=5)

    assert report.rating == "usable"
    assert report.tips == [TIP_PAUSE]
    assert report.usable


def test_strict_usable_when_average_below_threshold():
    frames = _steady(n=9, sharpness=1.0) + [make_scored(9, 20.0, 0.02)]
    report = generate_quality_report(frames, VIDEO, policy="strict", min_sharpness_threshold=5)

    assert report.rating == "usable"
    assert TIP_LIGHTING in report.tips


def test_strict_poor_when_nothing_reaches_threshold():
    frames = _steady(n=10, sharpness=4.0)
    report = generate_quality_report(frames, VIDEO, policy="strict", min_sharpness_threshold=5)

    assert report.rating == "poor"
    assert report.status == "unusable"
    assert not report.usable
    # Pauses were fine, but a rejected video still gets both reshoot tips.
    assert report.tips == [TIP_LIGHTING, TIP_PAUSE]


def test_strict_uses_custom_threshold_for_lighting_tip():
    report = generate_quality_report(_steady(sharpness=40.0), VIDEO, policy="strict", min_sharpness_threshold=50)
    assert report.rating == "poor"
    assert report.tips[0] == TIP_LIGHTING


def test_report_does_not_mutate_input():
    frames = _steady()
    snapshot = list(frames)
    generate_quality_report(frames, VIDEO, policy="strict", min_sharpness_threshold=5)
    assert frames == snapshot


def test_to_dict_shape():
    report = generate_quality_report(_steady(), VIDEO)
    assert report.to_dict() == {
        "video": {"filename": "mug.mp4", "duration_sec": 12.5},
        "analysis": {
            "total_frames_analyzed": 10,
            "average_sharpness": 40.0,
            "max_sharpness": 40.0,
            "average_motion": 0.02,
            "low_motion_frames": 10,
        },
        "tips_for_better_results": [TIP_GOOD],
        "status": "processed",
        "rating": None,
    }


def test_strict_defaults_agree_with_selector():
    frames = [make_scored(i, 1.0, 0.02) for i in range(6)]
    config = SelectionConfig(top_k=3, policy="strict")

    candidates = select_candidates(frames, config)
    report = generate_quality_report(frames, VIDEO, policy=config.policy)

    assert candidates.unusable
    assert report.rating == "poor"
    assert report.status == "unusable"


def test_strict_defaults_sharp_video_is_usable_for_both():
    frames = _steady(n=6, sharpness=5.0)
    config = SelectionConfig(top_k=3, policy="strict")

    candidates = select_candidates(frames, config)
    report = generate_quality_report(frames, VIDEO, policy=config.policy)

    assert not candidates.unusable
    assert report.usable

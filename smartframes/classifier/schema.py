"""Validation and normalization of classifier responses.

The classifier has answered in three shapes over time:

* ``recommended_shots`` entries with ``product_id`` / ``angle_id`` / ``score``;
* older ``recommended_shots`` entries that carry the angle as ``type`` and
  have no product or score;
* ``variants_discovered`` entries keyed by ``variant_id`` with
  ``best_frame_id`` / ``best_frame_score``.

When none of them yields a shot, the best ``frame_evaluation`` entry per
``variant_id`` stands in.

All of them are folded into ``RecommendedShot`` here so nothing downstream
has to know which one arrived.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from smartframes.classifier.base import (
    ClassificationResult,
    ClassifierResponseError,
    RecommendedShot,
)

DEFAULT_PRODUCT_ID = "product_1"
DEFAULT_SCORE = 50.0


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Shot(_Lenient):
    product_id: str | None = None
    angle_id: str | None = None
    type: str | None = None
    frame_id: str | None = None
    score: float | None = None
    description: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def _require_angle(self) -> "_Shot":
        if not (self.angle_id or self.type):
            raise ValueError("recommended shot has neither angle_id nor type")
        return self


class _Variant(_Lenient):
    product_id: str | None = None
    variant_id: str
    best_frame_id: str | None = None
    best_frame_score: float | None = None
    description: str | None = None


class _FrameEvaluation(_Lenient):
    frame_id: str
    quality_score_0_100: float | None = None
    variant_id: str | None = None
    angle_estimate: str | None = None


class _Product(_Lenient):
    product_id: str | None = None
    product_category: str | None = None


class _Response(_Lenient):
    recommended_shots: list[_Shot] | None = None
    variants_discovered: list[_Variant] | None = None
    frame_evaluation: list[_FrameEvaluation] | None = None
    products_detected: list[_Product] | None = None

    @model_validator(mode="after")
    def _require_recommendations(self) -> "_Response":
        if self.recommended_shots is None and self.variants_discovered is None:
            raise ValueError(
                "response has neither recommended_shots nor variants_discovered"
            )
        return self


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _resolve_score(
    score: float | None, frame_id: str | None, evaluated: dict[str, float]
) -> float | None:
    if frame_id is None:
        return score
    if score is not None:
        return score
    return evaluated.get(frame_id, DEFAULT_SCORE)


def _evaluation_score(evaluation: _FrameEvaluation) -> float:
    if evaluation.quality_score_0_100 is None:
        return DEFAULT_SCORE
    return evaluation.quality_score_0_100


def _best_evaluated_shots(
    evaluations: list[_FrameEvaluation],
) -> list[RecommendedShot]:
    """One shot per ``variant_id``: the highest-scoring evaluated frame."""
    best: dict[str, _FrameEvaluation] = {}
    for evaluation in evaluations:
        if not evaluation.variant_id:
            continue
        current = best.get(evaluation.variant_id)
        score = _evaluation_score(evaluation)
        if current is None or score > _evaluation_score(current):
            best[evaluation.variant_id] = evaluation

    return [
        RecommendedShot(
            product_id=DEFAULT_PRODUCT_ID,
            angle_id=variant_id,
            frame_id=evaluation.frame_id,
            score=_evaluation_score(evaluation),
            description=evaluation.angle_estimate or "",
        )
        for variant_id, evaluation in best.items()
    ]


def parse_classification(data: str | dict[str, Any]) -> ClassificationResult:
    """Validate a raw classifier response and return its canonical form.

    Raises:
        ClassifierResponseError: If the body is not JSON or fails validation.
    """
    if isinstance(data, str):
        try:
            data = json.loads(strip_code_fences(data))
        except json.JSONDecodeError as exc:
            raise ClassifierResponseError(
                f"Failed to parse classifier response as JSON: {exc}"
            ) from exc

    if not isinstance(data, dict):
        raise ClassifierResponseError(
            f"Classifier response must be an object, got {type(data).__name__}"
        )

    try:
        raw = _Response.model_validate(data)
    except ValidationError as exc:
        raise ClassifierResponseError(f"Invalid classifier response: {exc}") from exc

    evaluated = {
        e.frame_id: e.quality_score_0_100
        for e in raw.frame_evaluation or []
        if e.quality_score_0_100 is not None
    }

    shots: list[RecommendedShot] = []
    for shot in raw.recommended_shots or []:
        frame_id = shot.frame_id or None
        shots.append(
            RecommendedShot(
                product_id=shot.product_id or DEFAULT_PRODUCT_ID,
                angle_id=shot.angle_id or shot.type or "",
                frame_id=frame_id,
                score=_resolve_score(shot.score, frame_id, evaluated),
                description=shot.description or "",
                reason=shot.reason or "",
            )
        )
    for variant in raw.variants_discovered or []:
        frame_id = variant.best_frame_id or None
        shots.append(
            RecommendedShot(
                product_id=variant.product_id or DEFAULT_PRODUCT_ID,
                angle_id=variant.variant_id,
                frame_id=frame_id,
                score=_resolve_score(variant.best_frame_score, frame_id, evaluated),
                description=variant.description or "",
            )
        )

    if not shots:
        # Nothing recommended outright, so fall back to per-frame evaluations.
        shots = _best_evaluated_shots(raw.frame_evaluation or [])

    category = next(
        (
            p.product_category
            for p in (raw.products_detected or [])
            if p.product_category
        ),
        None,
    )
    return ClassificationResult(recommended_shots=shots, product_category=category)

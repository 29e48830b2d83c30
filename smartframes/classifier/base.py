"""Contract between the variant tournament and the AI vision classifier."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ClassifierError(Exception):
    """Raised when a classification call fails and should not be retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClassifierResponseError(ClassifierError):
    """Raised when a classifier response is not valid JSON or fails the schema."""


@dataclass
class ClassificationRequest:
    """One batch of candidate images plus positional metadata."""

    images: list[str]  # base64 PNG, same order as metadata
    metadata: list[dict[str, Any]]
    video_context: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {
            "images": self.images,
            "metadata": self.metadata,
            "video_context": self.video_context,
        }

    @property
    def frame_ids(self) -> list[str]:
        return [m["frame_id"] for m in self.metadata]


@dataclass(frozen=True)
class RecommendedShot:
    """Canonical form of one classifier recommendation.

    ``frame_id`` is None when the classifier found no suitable frame for the
    (product, angle) pair in this batch.
    """

    product_id: str
    angle_id: str
    frame_id: str | None
    score: float | None = None
    description: str = ""
    reason: str = ""


@dataclass
class ClassificationResult:
    recommended_shots: list[RecommendedShot] = field(default_factory=list)
    product_category: str | None = None


class Classifier(ABC):
    @abstractmethod
    async def classify(
        self, request: ClassificationRequest
    ) -> ClassificationResult: ...

from dataclasses import dataclass, field
from typing import Any, NamedTuple


@dataclass(frozen=True)
class Frame:
    """One sampled video image, as handed over by the frame extractor."""

    frame_id: str
    timestamp: float  # seconds from video start
    # Path to an image file or an in-memory ndarray; never mutated here.
    pixel_source: Any = field(compare=False, repr=False)


@dataclass(frozen=True)
class ScoredFrame:
    """A Frame plus its quality metrics."""

    frame: Frame
    sharpness: float
    motion: float  # 0–1, 0 for the first frame of a sequence
    combined_score: float

    @property
    def frame_id(self) -> str:
        return self.frame.frame_id

    @property
    def timestamp(self) -> float:
        return self.frame.timestamp

    @property
    def pixel_source(self) -> Any:
        return self.frame.pixel_source

    def to_frame_scores(self) -> dict[str, float]:
        return {
            "sharpness": self.sharpness,
            "motion": self.motion,
            "combined": self.combined_score,
        }


@dataclass(frozen=True)
class VideoMetadata:
    filename: str
    duration_sec: float
    width: int = 0
    height: int = 0

    def to_context(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "duration_sec": self.duration_sec,
            "width": self.width,
            "height": self.height,
        }


class VariantKey(NamedTuple):
    """A distinct (product, camera angle) combination named by the classifier."""

    product_id: str
    angle_id: str

    @property
    def label(self) -> str:
        return f"{self.product_id}_{self.angle_id}"


@dataclass(frozen=True)
class VariantRecord:
    """Best frame seen so far for one VariantKey."""

    frame_id: str
    score: float  # classifier-reported quality
    description: str = ""


@dataclass
class FinalFrame:
    """One deduplicated output frame, possibly serving several variants."""

    frame_id: str
    timestamp: float
    pixel_source: Any = field(repr=False)
    variants: list[VariantKey] = field(default_factory=list)
    score: float = 0.0  # best classifier score across its variants
    description: str = ""

    @property
    def product_id(self) -> str:
        return self.variants[0].product_id if self.variants else ""

    @property
    def angle_ids(self) -> list[str]:
        return [v.angle_id for v in self.variants]

    @property
    def labels(self) -> list[str]:
        return [v.label for v in self.variants]

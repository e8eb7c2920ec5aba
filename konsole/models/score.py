"""Score payload models for evaluation jobs.

A job's score payload arrives in one of two shapes:

- Legacy: a single ``cosine_similarity`` metric with per-item values.
- Current: ``summary_scores`` plus ``individual_scores`` with per-trace
  question/answer/ground-truth context.

Neither shape carries a tag field, so the variant is decided once, by key
presence, in :func:`parse_score_object`. Everything downstream works with the
typed models.
"""

from enum import Enum
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

logger = structlog.get_logger(__name__)


class ScoreDataType(str, Enum):
    """Data type tag for a metric."""

    NUMERIC = "NUMERIC"
    CATEGORICAL = "CATEGORICAL"


# ---------------------------------------------------------------------------
# Current variant
# ---------------------------------------------------------------------------


class TraceScore(BaseModel):
    """One named metric value for one evaluated example."""

    name: str
    value: Union[float, str]
    data_type: ScoreDataType
    comment: Optional[str] = None


class TraceInput(BaseModel):
    question: str = ""


class TraceOutput(BaseModel):
    answer: str = ""


class TraceMetadata(BaseModel):
    ground_truth: Optional[str] = None
    item_id: Optional[str] = None
    response_id: Optional[str] = None


class IndividualScore(BaseModel):
    """One evaluated example (trace) and its metric values."""

    trace_id: str
    input: Optional[TraceInput] = None
    output: Optional[TraceOutput] = None
    metadata: Optional[TraceMetadata] = None
    trace_scores: list[TraceScore] = Field(default_factory=list)

    def find_score(self, name: str) -> Optional[TraceScore]:
        """Return the first trace score with the given name, if any."""
        for score in self.trace_scores:
            if score.name == name:
                return score
        return None


class SummaryScore(BaseModel):
    """Aggregate metric across all traces of a job."""

    name: str
    avg: Optional[float] = None
    std: Optional[float] = None
    total_pairs: int = Field(..., ge=0)
    data_type: ScoreDataType
    distribution: Optional[dict[str, int]] = Field(
        default=None, description="Value counts for categorical metrics"
    )


class CurrentScore(BaseModel):
    """Multi-metric score object with per-trace detail."""

    summary_scores: list[SummaryScore]
    individual_scores: list[IndividualScore]


# ---------------------------------------------------------------------------
# Legacy variant
# ---------------------------------------------------------------------------


class PerItemScore(BaseModel):
    trace_id: str
    cosine_similarity: float


class CosineSimilarity(BaseModel):
    avg: float
    std: float
    total_pairs: int = Field(..., ge=0)
    per_item_scores: list[PerItemScore] = Field(default_factory=list)


class LegacyScore(BaseModel):
    """Single-metric cosine similarity score object."""

    cosine_similarity: CosineSimilarity


ScoreObject = Union[CurrentScore, LegacyScore]


def parse_score_object(raw: Any) -> Optional[ScoreObject]:
    """Discriminate and validate a raw score payload.

    The current variant wins when both current and legacy keys are present.
    Payloads matching neither variant, or failing validation, yield None
    rather than raising.

    Args:
        raw: Decoded JSON value from the upstream ``score``/``scores`` field

    Returns:
        CurrentScore, LegacyScore, or None
    """
    if isinstance(raw, (CurrentScore, LegacyScore)):
        return raw
    if not isinstance(raw, dict):
        return None

    try:
        if "summary_scores" in raw and "individual_scores" in raw:
            return CurrentScore(
                summary_scores=raw["summary_scores"] or [],
                individual_scores=raw["individual_scores"] or [],
            )
        if "cosine_similarity" in raw:
            return LegacyScore.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            "score_object_invalid",
            error_count=e.error_count(),
            keys=sorted(raw.keys()),
        )
        return None

    logger.debug("score_object_unrecognized", keys=sorted(raw.keys()))
    return None

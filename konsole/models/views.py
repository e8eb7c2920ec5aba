"""Render-ready view models derived from score objects and jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from konsole.models.score import IndividualScore, SummaryScore

NO_DETAIL_MESSAGE = "No detailed results available or using legacy format"
NO_INDIVIDUAL_SCORES_MESSAGE = "No individual scores available"


class ScoreVariant(str, Enum):
    CURRENT = "current"
    LEGACY = "legacy"


class Bucket(str, Enum):
    """Severity bucket used for coloring values and badges."""

    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"
    NEUTRAL = "neutral"


@dataclass
class NormalizedView:
    """Single shape consumers render, whatever the score payload looked like.

    ``unavailable_reason`` is set when there is nothing to render; the view is
    then empty rather than an error.
    """

    variant: Optional[ScoreVariant] = None
    summary_scores: list[SummaryScore] = field(default_factory=list)
    individual_scores: list[IndividualScore] = field(default_factory=list)
    metric_names: list[str] = field(default_factory=list)
    unavailable_reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.unavailable_reason is None

    @property
    def detail_message(self) -> Optional[str]:
        """Empty-state message for the detailed table, or None if it has rows."""
        if not self.available:
            return self.unavailable_reason
        if not self.individual_scores:
            return NO_DETAIL_MESSAGE
        return None

    @classmethod
    def unavailable(cls, reason: str = NO_DETAIL_MESSAGE) -> NormalizedView:
        return cls(unavailable_reason=reason)


@dataclass
class TruncatedText:
    """Text with a summary form and the full form kept for expansion."""

    summary: str
    full: str
    truncated: bool


@dataclass
class ScoreCell:
    """One metric value in a results row."""

    value: str
    bucket: Bucket
    comment: Optional[TruncatedText] = None


@dataclass
class ResultRow:
    index: int
    trace_id: str
    question: TruncatedText
    answer: TruncatedText
    ground_truth: TruncatedText
    cells: list[ScoreCell]


@dataclass
class ResultsTable:
    """Detailed per-trace table. ``empty_message`` is set when there are no rows."""

    columns: list[str] = field(default_factory=list)
    rows: list[ResultRow] = field(default_factory=list)
    empty_message: Optional[str] = None


@dataclass
class SummaryLine:
    name: str
    data_type: str
    text: str
    bucket: Bucket


@dataclass
class JobCard:
    """Collapsed and expanded summary of one job."""

    id: int
    run_name: str
    dataset_name: str
    total_items: int
    status_label: str
    status_bucket: Bucket
    score_label: Optional[str]
    model: str
    error_message: Optional[str]
    object_store_url: Optional[str]
    dataset_id: Optional[int] = None
    batch_job_id: Optional[int] = None
    organization_id: Optional[int] = None
    instructions: Optional[str] = None
    tool_types: Optional[str] = None
    created: str = "N/A"
    updated: str = "N/A"
    summary: list[SummaryLine] = field(default_factory=list)

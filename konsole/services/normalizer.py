"""Reconcile legacy and current score objects into one renderable view."""

from typing import Optional

from konsole.models.job import EvaluationJob
from konsole.models.score import (
    CurrentScore,
    LegacyScore,
    ScoreDataType,
    ScoreObject,
    SummaryScore,
)
from konsole.models.views import (
    NO_DETAIL_MESSAGE,
    NO_INDIVIDUAL_SCORES_MESSAGE,
    NormalizedView,
    ScoreVariant,
)

LEGACY_METRIC_NAME = "cosine_similarity"


def normalize(score: Optional[ScoreObject]) -> NormalizedView:
    """Build a NormalizedView from a parsed score object.

    Args:
        score: CurrentScore, LegacyScore, or None

    Returns:
        Available view for legacy or non-empty current scores, otherwise an
        unavailable view. Never raises.
    """
    if isinstance(score, CurrentScore):
        if not score.individual_scores:
            return NormalizedView.unavailable(NO_INDIVIDUAL_SCORES_MESSAGE)
        first = score.individual_scores[0]
        return NormalizedView(
            variant=ScoreVariant.CURRENT,
            summary_scores=list(score.summary_scores),
            individual_scores=list(score.individual_scores),
            metric_names=[s.name for s in first.trace_scores],
        )

    if isinstance(score, LegacyScore):
        cosine = score.cosine_similarity
        return NormalizedView(
            variant=ScoreVariant.LEGACY,
            summary_scores=[
                SummaryScore(
                    name=LEGACY_METRIC_NAME,
                    avg=cosine.avg,
                    std=cosine.std,
                    total_pairs=cosine.total_pairs,
                    data_type=ScoreDataType.NUMERIC,
                )
            ],
        )

    return NormalizedView.unavailable(NO_DETAIL_MESSAGE)


def normalize_job(job: EvaluationJob) -> NormalizedView:
    """Normalize the score object attached to a job."""
    return normalize(job.score_object)

"""Unit tests for the score normalizer."""

from konsole.models.job import EvaluationJob
from konsole.models.score import (
    CosineSimilarity,
    CurrentScore,
    IndividualScore,
    LegacyScore,
    ScoreDataType,
    SummaryScore,
    TraceScore,
)
from konsole.models.views import (
    NO_DETAIL_MESSAGE,
    NO_INDIVIDUAL_SCORES_MESSAGE,
    ScoreVariant,
)
from konsole.services.normalizer import LEGACY_METRIC_NAME, normalize, normalize_job


def _trace(trace_id: str, *names: str) -> IndividualScore:
    return IndividualScore(
        trace_id=trace_id,
        trace_scores=[
            TraceScore(name=name, value=0.5, data_type=ScoreDataType.NUMERIC) for name in names
        ],
    )


class TestNormalize:
    """Tests for normalize()."""

    def test_absent_score_is_unavailable(self):
        """Test None yields the generic unavailable view."""
        view = normalize(None)
        assert not view.available
        assert view.unavailable_reason == NO_DETAIL_MESSAGE

    def test_current_without_individuals(self):
        """Test a current score with no traces is unavailable with its own message."""
        score = CurrentScore(
            summary_scores=[
                SummaryScore(name="m", avg=0.5, total_pairs=0, data_type=ScoreDataType.NUMERIC)
            ],
            individual_scores=[],
        )
        view = normalize(score)
        assert not view.available
        assert view.detail_message == NO_INDIVIDUAL_SCORES_MESSAGE

    def test_legacy_yields_single_numeric_summary(self):
        """Test a legacy score becomes one cosine_similarity summary."""
        score = LegacyScore(
            cosine_similarity=CosineSimilarity(avg=0.63, std=0.1, total_pairs=4)
        )
        view = normalize(score)

        assert view.available
        assert view.variant == ScoreVariant.LEGACY
        assert len(view.summary_scores) == 1
        summary = view.summary_scores[0]
        assert summary.name == LEGACY_METRIC_NAME
        assert (summary.avg, summary.std, summary.total_pairs) == (0.63, 0.1, 4)
        assert summary.data_type == ScoreDataType.NUMERIC
        assert view.individual_scores == []
        assert view.detail_message == NO_DETAIL_MESSAGE

    def test_metric_names_come_from_first_trace_only(self):
        """Test columns are the first trace's metrics in order, without union."""
        score = CurrentScore(
            summary_scores=[],
            individual_scores=[_trace("t1", "b", "a"), _trace("t2", "a", "c")],
        )
        view = normalize(score)
        assert view.variant == ScoreVariant.CURRENT
        assert view.metric_names == ["b", "a"]
        assert len(view.individual_scores) == 2
        assert view.detail_message is None

    def test_normalize_job(self, sample_current_payload, sample_legacy_payload):
        """Test the mock fixtures normalize to their respective variants."""
        current = normalize_job(EvaluationJob.model_validate(sample_current_payload))
        legacy = normalize_job(EvaluationJob.model_validate(sample_legacy_payload))
        assert current.variant == ScoreVariant.CURRENT
        assert current.metric_names == ["cosine_similarity", "correctness"]
        assert legacy.variant == ScoreVariant.LEGACY

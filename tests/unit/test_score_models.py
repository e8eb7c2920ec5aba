"""Unit tests for score payload parsing and job score resolution."""

import pytest

from konsole.models.job import EvaluationJob, build_evaluation_config
from konsole.models.score import (
    CurrentScore,
    LegacyScore,
    ScoreDataType,
    parse_score_object,
)

LEGACY = {
    "cosine_similarity": {
        "avg": 0.63,
        "std": 0.12,
        "total_pairs": 2,
        "per_item_scores": [
            {"trace_id": "t-1", "cosine_similarity": 0.75},
            {"trace_id": "t-2", "cosine_similarity": 0.51},
        ],
    }
}

CURRENT = {
    "summary_scores": [
        {"name": "cosine_similarity", "avg": 0.8, "std": 0.1, "total_pairs": 1, "data_type": "NUMERIC"}
    ],
    "individual_scores": [
        {
            "trace_id": "t-1",
            "input": {"question": "Q?"},
            "output": {"answer": "A."},
            "metadata": {"ground_truth": "A"},
            "trace_scores": [
                {"name": "cosine_similarity", "value": 0.8, "data_type": "NUMERIC"},
                {"name": "correctness", "value": "CORRECT", "data_type": "CATEGORICAL"},
            ],
        }
    ],
}


class TestParseScoreObject:
    """Tests for structural discrimination of score payloads."""

    def test_current_variant(self):
        """Test a payload with both current keys parses as CurrentScore."""
        score = parse_score_object(CURRENT)
        assert isinstance(score, CurrentScore)
        assert score.individual_scores[0].trace_scores[1].data_type == ScoreDataType.CATEGORICAL

    def test_legacy_variant(self):
        """Test a payload with cosine_similarity parses as LegacyScore."""
        score = parse_score_object(LEGACY)
        assert isinstance(score, LegacyScore)
        assert score.cosine_similarity.avg == 0.63
        assert len(score.cosine_similarity.per_item_scores) == 2

    def test_current_wins_when_both_shapes_present(self):
        """Test the current variant is chosen when legacy keys also exist."""
        score = parse_score_object({**CURRENT, **LEGACY})
        assert isinstance(score, CurrentScore)

    def test_only_one_current_key_is_not_current(self):
        """Test summary_scores alone does not make a current score."""
        assert parse_score_object({"summary_scores": []}) is None

    def test_null_lists_become_empty(self):
        """Test null summary/individual lists parse as empty lists."""
        score = parse_score_object({"summary_scores": None, "individual_scores": None})
        assert isinstance(score, CurrentScore)
        assert score.individual_scores == []

    @pytest.mark.parametrize("raw", [None, 0.5, "text", [], {}, {"foo": 1}])
    def test_unrecognized_yields_none(self, raw):
        """Test anything that is neither variant yields None."""
        assert parse_score_object(raw) is None

    def test_invalid_payload_does_not_raise(self):
        """Test a recognized but invalid payload yields None instead of raising."""
        assert parse_score_object({"cosine_similarity": {"avg": "high"}}) is None

    def test_model_instance_passes_through(self):
        """Test an already parsed score object is returned unchanged."""
        score = parse_score_object(LEGACY)
        assert parse_score_object(score) is score

    def test_find_score(self):
        """Test lookup of a trace score by metric name."""
        score = parse_score_object(CURRENT)
        item = score.individual_scores[0]
        assert item.find_score("correctness").value == "CORRECT"
        assert item.find_score("missing") is None


class TestJobScoreResolution:
    """Tests for resolving the scores/score fields on EvaluationJob."""

    def test_numeric_score(self):
        """Test a numeric score becomes the job-level score value."""
        job = EvaluationJob.model_validate({"id": 1, "status": "completed", "score": 0.82})
        assert job.score_value == 0.82
        assert job.score_object is None
        assert job.aggregate_score == 0.82

    def test_scores_preferred_over_score(self):
        """Test scores wins when both fields are present."""
        job = EvaluationJob.model_validate(
            {"id": 1, "status": "completed", "scores": CURRENT, "score": LEGACY}
        )
        assert isinstance(job.score_object, CurrentScore)

    def test_falsy_scores_falls_back_to_score(self):
        """Test a null scores field falls back to score."""
        job = EvaluationJob.model_validate(
            {"id": 1, "status": "completed", "scores": None, "score": LEGACY}
        )
        assert isinstance(job.score_object, LegacyScore)

    def test_legacy_aggregate_is_cosine_average(self):
        """Test the aggregate score of a legacy object is its cosine average."""
        job = EvaluationJob.model_validate({"id": 1, "status": "completed", "score": LEGACY})
        assert job.aggregate_score == 0.63

    def test_current_object_has_no_aggregate(self):
        """Test a current score object does not yield an aggregate score."""
        job = EvaluationJob.model_validate({"id": 1, "status": "completed", "score": CURRENT})
        assert job.aggregate_score is None
        assert job.has_score

    def test_unrecognized_score_is_absent(self):
        """Test an unrecognized score mapping leaves the job without a score."""
        job = EvaluationJob.model_validate({"id": 1, "status": "completed", "score": {"x": 1}})
        assert job.score_object is None
        assert not job.has_score

    def test_unknown_fields_ignored(self):
        """Test extra upstream fields do not break parsing."""
        job = EvaluationJob.model_validate({"id": 7, "status": "queued", "shiny_new_field": True})
        assert job.id == 7

    def test_null_fields_take_defaults(self):
        """Test nulls in defaulted fields parse instead of failing the job."""
        job = EvaluationJob.model_validate(
            {"id": 1, "status": None, "run_name": None, "dataset_name": None, "total_items": None}
        )
        assert job.total_items == 0
        assert job.run_name == ""
        assert job.dataset_name == ""
        assert job.status == ""


class TestOutcomeConsistency:
    """Tests for the score/error vs status invariant."""

    def test_completed_with_score(self):
        """Test a completed job with a score is consistent."""
        job = EvaluationJob(id=1, status="completed", score_value=0.9)
        assert job.outcome_is_consistent

    def test_completed_without_score(self):
        """Test a completed job without a score is flagged."""
        job = EvaluationJob(id=1, status="completed")
        assert not job.outcome_is_consistent

    def test_failed_with_error(self):
        """Test a failed job with an error message is consistent."""
        job = EvaluationJob(id=1, status="FAILED", error_message="boom")
        assert job.outcome_is_consistent

    def test_processing_with_score(self):
        """Test an in-flight job carrying a score is flagged."""
        job = EvaluationJob(id=1, status="processing", score_value=0.5)
        assert not job.outcome_is_consistent


class TestBuildEvaluationConfig:
    """Tests for building the optional run config."""

    def test_no_inputs(self):
        """Test no config is built without any input."""
        assert build_evaluation_config() is None
        assert build_evaluation_config(model="", instructions="", vector_store_ids="") is None

    def test_model_only(self):
        """Test a model alone does not add tools."""
        config = build_evaluation_config(model="gpt-4")
        assert config.model == "gpt-4"
        assert config.tools == []
        assert config.include == []

    def test_file_search_tool(self):
        """Test vector store ids become a file_search tool with default limit."""
        config = build_evaluation_config(vector_store_ids=" vs_1 , vs_2 ,")
        assert config.tools == [
            {"type": "file_search", "vector_store_ids": ["vs_1", "vs_2"], "max_num_results": 3}
        ]
        assert config.include == ["file_search_call.results"]

    def test_blank_store_ids_add_no_tool(self):
        """Test ids that split to nothing add no tool."""
        config = build_evaluation_config(model="gpt-4", vector_store_ids=" , ")
        assert config.tools == []

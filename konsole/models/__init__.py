"""Models package exports."""

from konsole.models.dataset import APIKey, Dataset
from konsole.models.job import EvaluationConfig, EvaluationCreateRequest, EvaluationJob
from konsole.models.score import (
    CurrentScore,
    IndividualScore,
    LegacyScore,
    ScoreDataType,
    ScoreObject,
    SummaryScore,
    TraceScore,
    parse_score_object,
)

__all__ = [
    "APIKey",
    "CurrentScore",
    "Dataset",
    "EvaluationConfig",
    "EvaluationCreateRequest",
    "EvaluationJob",
    "IndividualScore",
    "LegacyScore",
    "ScoreDataType",
    "ScoreObject",
    "SummaryScore",
    "TraceScore",
    "parse_score_object",
]

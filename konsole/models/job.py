"""Evaluation job models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from konsole.models.score import LegacyScore, ScoreObject, parse_score_object

IN_FLIGHT_STATUSES = frozenset({"pending", "queued", "processing"})
SUCCESS_STATUSES = frozenset({"completed", "success"})
FAILURE_STATUSES = frozenset({"failed", "error"})

# Fields with non-null defaults that the backend may still send as null
DEFAULTED_FIELDS = ("run_name", "dataset_name", "status", "total_items")


class EvaluationConfig(BaseModel):
    """Run configuration submitted with an evaluation job."""

    model: Optional[str] = None
    instructions: Optional[str] = None
    tools: list[dict[str, Any]] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    temperature: Optional[float] = None


class EvaluationJob(BaseModel):
    """One submitted evaluation run, as reported by the backend.

    The upstream payload may carry the score under ``scores`` or ``score``;
    ``scores`` wins when truthy. A numeric value is the job-level fractional
    score, a mapping is parsed into a typed score object.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    run_name: str = ""
    dataset_name: str = ""
    dataset_id: Optional[int] = None
    batch_job_id: Optional[int] = None
    embedding_batch_job_id: Optional[int] = None
    status: str = ""
    object_store_url: Optional[str] = None
    total_items: int = 0
    error_message: Optional[str] = None
    score_value: Optional[float] = Field(
        default=None, description="Job-level fractional score, when reported as a number"
    )
    score_object: Optional[ScoreObject] = Field(
        default=None, description="Parsed score object, when reported as a mapping"
    )
    config: Optional[EvaluationConfig] = None
    assistant_id: Optional[str] = None
    organization_id: Optional[int] = None
    project_id: Optional[int] = None
    inserted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_score_field(cls, data: Any) -> Any:
        """Fold the raw ``scores``/``score`` fields into typed attributes.

        Nulls in defaulted fields fall back to the default so one sparse
        job cannot invalidate a whole job list.
        """
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for name in DEFAULTED_FIELDS:
            if name in data and data[name] is None:
                del data[name]

        if "score_object" in data:
            data["score_object"] = parse_score_object(data["score_object"])

        raw = data.pop("scores", None) or data.pop("score", None)
        data.pop("score", None)

        if isinstance(raw, bool):
            raw = None
        if isinstance(raw, (int, float)):
            data.setdefault("score_value", float(raw))
        elif raw is not None:
            data.setdefault("score_object", parse_score_object(raw))
        return data

    @property
    def normalized_status(self) -> str:
        return self.status.strip().lower()

    @property
    def aggregate_score(self) -> Optional[float]:
        """Job-level fractional score used for the summary percentage."""
        if self.score_value is not None:
            return self.score_value
        if isinstance(self.score_object, LegacyScore):
            return self.score_object.cosine_similarity.avg
        return None

    @property
    def has_score(self) -> bool:
        return self.score_value is not None or self.score_object is not None

    @property
    def outcome_is_consistent(self) -> bool:
        """Whether score/error presence matches the status.

        A terminal success carries a score and no error; a terminal failure
        carries an error and no score; a non-terminal job carries neither.
        """
        status = self.normalized_status
        has_error = bool(self.error_message)
        if status in SUCCESS_STATUSES:
            return self.has_score and not has_error
        if status in FAILURE_STATUSES:
            return has_error and not self.has_score
        return not self.has_score and not has_error


class EvaluationCreateRequest(BaseModel):
    """Payload for starting an evaluation run."""

    dataset_id: int
    experiment_name: str = Field(..., min_length=1)
    config: Optional[EvaluationConfig] = None


def build_evaluation_config(
    model: Optional[str] = None,
    instructions: Optional[str] = None,
    vector_store_ids: Optional[str] = None,
    max_num_results: Optional[int] = None,
) -> Optional[EvaluationConfig]:
    """Build the optional run config from console inputs.

    A ``file_search`` tool is added only when at least one vector store id
    survives splitting the comma-separated input.

    Returns:
        EvaluationConfig, or None when no config field was provided
    """
    if not (model or instructions or vector_store_ids):
        return None

    config = EvaluationConfig(model=model or None, instructions=instructions or None)

    store_ids = [s.strip() for s in (vector_store_ids or "").split(",") if s.strip()]
    if store_ids:
        config.tools = [
            {
                "type": "file_search",
                "vector_store_ids": store_ids,
                "max_num_results": max_num_results or 3,
            }
        ]
        config.include = ["file_search_call.results"]

    return config

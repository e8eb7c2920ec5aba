"""Deterministic display derivations for evaluation results.

Everything here is a pure function of its input so the CLI (or any other
front end) only decides layout and color, never thresholds or wording.
"""

import math
from datetime import datetime
from typing import Optional

from konsole.models.job import EvaluationJob
from konsole.models.score import ScoreDataType, SummaryScore, TraceScore
from konsole.models.views import (
    Bucket,
    JobCard,
    NormalizedView,
    ResultRow,
    ResultsTable,
    ScoreCell,
    SummaryLine,
    TruncatedText,
)
from konsole.services.lifecycle import JobPhase, classify_status
from konsole.services.normalizer import normalize_job

TEXT_TRUNCATE_LENGTH = 150  # question, answer, ground truth
COMMENT_TRUNCATE_LENGTH = 50
ELLIPSIS = "..."
MISSING = "N/A"

GOOD_THRESHOLD = 0.7
WARNING_THRESHOLD = 0.5

CATEGORICAL_BUCKETS = {
    "CORRECT": Bucket.GOOD,
    "PARTIAL": Bucket.WARNING,
    "INCORRECT": Bucket.BAD,
}

STATUS_BUCKETS = {
    JobPhase.SUCCEEDED: Bucket.GOOD,
    JobPhase.IN_FLIGHT: Bucket.WARNING,
    JobPhase.FAILED: Bucket.BAD,
    JobPhase.UNKNOWN: Bucket.NEUTRAL,
}

FILE_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def numeric_bucket(value: float) -> Bucket:
    """Bucket a numeric metric; boundaries belong to the higher bucket."""
    if value >= GOOD_THRESHOLD:
        return Bucket.GOOD
    if value >= WARNING_THRESHOLD:
        return Bucket.WARNING
    return Bucket.BAD


def categorical_bucket(value: str) -> Bucket:
    return CATEGORICAL_BUCKETS.get(value, Bucket.NEUTRAL)


def status_bucket(status: str) -> Bucket:
    """Badge bucket for a job status (case-insensitive)."""
    return STATUS_BUCKETS[classify_status(status)]


def truncate(text: str, limit: int = TEXT_TRUNCATE_LENGTH) -> TruncatedText:
    """Cut at the character boundary and append an ellipsis when over limit."""
    if len(text) > limit:
        return TruncatedText(summary=text[:limit] + ELLIPSIS, full=text, truncated=True)
    return TruncatedText(summary=text, full=text, truncated=False)


def format_score_cell(score: Optional[TraceScore]) -> ScoreCell:
    """Display value and bucket for one metric of one row."""
    if score is None:
        return ScoreCell(value=MISSING, bucket=Bucket.NEUTRAL)

    comment = truncate(score.comment, COMMENT_TRUNCATE_LENGTH) if score.comment else None

    if score.data_type == ScoreDataType.CATEGORICAL:
        value = str(score.value)
        return ScoreCell(value=value, bucket=categorical_bucket(value), comment=comment)

    try:
        number = float(score.value)
    except (TypeError, ValueError):
        return ScoreCell(value=str(score.value), bucket=Bucket.NEUTRAL, comment=comment)
    if math.isnan(number):
        return ScoreCell(value="NaN", bucket=Bucket.NEUTRAL, comment=comment)
    return ScoreCell(value=f"{number:.2f}", bucket=numeric_bucket(number), comment=comment)


def format_percentage(score: Optional[float]) -> Optional[str]:
    """Fractional score as a one-decimal percentage, e.g. 0.82 -> '82.0%'."""
    if score is None:
        return None
    return f"{score * 100:.1f}%"


def format_job_score(job: EvaluationJob) -> Optional[str]:
    """Score label for a job card, e.g. '82.0% score'."""
    percentage = format_percentage(job.aggregate_score)
    if percentage is None:
        return None
    return f"{percentage} score"


def format_summary_score(summary: SummaryScore) -> SummaryLine:
    """One line per aggregate metric: avg/std for numeric, counts for categorical."""
    if summary.data_type == ScoreDataType.CATEGORICAL:
        counts = summary.distribution or {}
        parts = [f"{label}: {count}" for label, count in counts.items()]
        text = ", ".join(parts) if parts else MISSING
        return SummaryLine(
            name=summary.name,
            data_type=summary.data_type.value,
            text=f"{text} ({summary.total_pairs} pairs)",
            bucket=Bucket.NEUTRAL,
        )

    if summary.avg is None:
        return SummaryLine(
            name=summary.name,
            data_type=summary.data_type.value,
            text=f"{MISSING} ({summary.total_pairs} pairs)",
            bucket=Bucket.NEUTRAL,
        )

    text = f"{summary.avg:.2f}"
    if summary.std is not None:
        text += f" ± {summary.std:.2f}"
    return SummaryLine(
        name=summary.name,
        data_type=summary.data_type.value,
        text=f"{text} ({summary.total_pairs} pairs)",
        bucket=numeric_bucket(summary.avg),
    )


def build_results_table(view: NormalizedView) -> ResultsTable:
    """Derive the detailed per-trace table from a normalized view.

    Metric columns come from the view's ``metric_names`` (the first trace's
    metrics); rows missing one of those metrics show N/A.
    """
    message = view.detail_message
    if message is not None:
        return ResultsTable(empty_message=message)

    rows = []
    for index, item in enumerate(view.individual_scores, start=1):
        question = item.input.question if item.input else ""
        answer = item.output.answer if item.output else ""
        ground_truth = (item.metadata.ground_truth if item.metadata else None) or ""
        rows.append(
            ResultRow(
                index=index,
                trace_id=item.trace_id,
                question=truncate(question or MISSING),
                answer=truncate(answer or MISSING),
                ground_truth=truncate(ground_truth or MISSING),
                cells=[format_score_cell(item.find_score(name)) for name in view.metric_names],
            )
        )

    return ResultsTable(columns=list(view.metric_names), rows=rows)


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else MISSING


def format_tool_types(tools: list[dict]) -> Optional[str]:
    """Comma-joined tool types, e.g. ``file_search``; None without tools."""
    types = [str(tool.get("type")) for tool in tools if tool.get("type")]
    return ", ".join(types) if types else None


def build_job_card(job: EvaluationJob) -> JobCard:
    """Summary and detail fields shown for one job in the job list."""
    view = normalize_job(job)
    config = job.config
    return JobCard(
        id=job.id,
        run_name=job.run_name,
        dataset_name=job.dataset_name,
        total_items=job.total_items,
        status_label=job.status.upper(),
        status_bucket=status_bucket(job.status),
        score_label=format_job_score(job),
        model=(config.model if config else None) or MISSING,
        error_message=job.error_message,
        object_store_url=job.object_store_url,
        dataset_id=job.dataset_id,
        batch_job_id=job.batch_job_id,
        organization_id=job.organization_id,
        instructions=config.instructions if config else None,
        tool_types=format_tool_types(config.tools) if config else None,
        created=format_timestamp(job.inserted_at),
        updated=format_timestamp(job.updated_at),
        summary=[format_summary_score(s) for s in view.summary_scores],
    )


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(FILE_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {FILE_SIZE_UNITS[exponent]}"

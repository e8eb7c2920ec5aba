"""Click CLI for the evaluation console."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
import structlog

from konsole.config import Settings, get_settings
from konsole.errors import KonsoleError
from konsole.models.job import EvaluationJob
from konsole.models.views import Bucket, JobCard, ResultsTable
from konsole.services.console_client import KonsoleClient
from konsole.services.lifecycle import JobSnapshot
from konsole.services.logging_service import configure_logging
from konsole.services.normalizer import normalize_job
from konsole.services.rendering import (
    build_job_card,
    build_results_table,
    format_file_size,
)
from konsole.services.store import (
    APIKeyStore,
    DatasetStore,
    FileBackend,
    dump_dataset_csv,
    export_json,
)
from konsole.services.workflow import ConsoleWorkflow

logger = structlog.get_logger(__name__)

BUCKET_COLORS = {
    Bucket.GOOD: "green",
    Bucket.WARNING: "yellow",
    Bucket.BAD: "red",
    Bucket.NEUTRAL: None,
}

KEY_OPTION_HELP = "Id of the stored API key to use (see `konsole keys list`)."


@dataclass
class ConsoleContext:
    """Everything a command needs: settings, local stores and a client factory."""

    settings: Settings
    api_keys: APIKeyStore
    datasets: DatasetStore
    client_factory: Callable[[], KonsoleClient]

    @classmethod
    def from_settings(cls, settings: Settings) -> ConsoleContext:
        backend = FileBackend(settings.data_dir)
        return cls(
            settings=settings,
            api_keys=APIKeyStore(backend),
            datasets=DatasetStore(backend),
            client_factory=lambda: KonsoleClient(settings),
        )


def _run(console: ConsoleContext, operation: Callable[[ConsoleWorkflow], Awaitable[Any]]) -> Any:
    """Run an async workflow operation, turning console errors into exit code 1."""

    async def runner() -> Any:
        async with console.client_factory() as client:
            workflow = ConsoleWorkflow(client, console.api_keys, console.datasets)
            return await operation(workflow)

    try:
        return asyncio.run(runner())
    except KonsoleError as e:
        logger.warning("console_operation_failed", error=e.message, error_type=type(e).__name__)
        click.secho(f"Error: {e.message}", fg="red", err=True)
        sys.exit(1)


def _styled(text: str, bucket: Bucket) -> str:
    return click.style(text, fg=BUCKET_COLORS[bucket])


@click.group()
@click.pass_context
def konsole(ctx: click.Context) -> None:
    """Konsole: upload datasets, run evaluations and inspect their scores."""
    if ctx.obj is None:
        ctx.obj = ConsoleContext.from_settings(get_settings())


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@konsole.command()
@click.option("--host", default=None, help="Bind address (default: KONSOLE_HOST).")
@click.option("--port", default=None, type=int, help="Port (default: KONSOLE_PORT).")
@click.pass_obj
def serve(console: ConsoleContext, host: Optional[str], port: Optional[int]) -> None:
    """Run the proxy service."""
    import uvicorn

    settings = console.settings
    uvicorn.run(
        "konsole.main:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# keys
# ---------------------------------------------------------------------------


@konsole.group()
def keys() -> None:
    """Manage stored API keys."""
    pass


@keys.command("add")
@click.argument("label")
@click.option("--key", "secret", prompt=True, hide_input=True, help="The API key value.")
@click.pass_obj
def keys_add(console: ConsoleContext, label: str, secret: str) -> None:
    """Store a new API key under LABEL."""
    if not label.strip() or not secret.strip():
        click.secho("Error: Label and key are both required", fg="red", err=True)
        sys.exit(1)
    api_key = console.api_keys.add(label, secret)
    click.echo(f"Added API key {api_key.id} ({api_key.label})")


@keys.command("list")
@click.pass_obj
def keys_list(console: ConsoleContext) -> None:
    """List stored API keys (masked)."""
    api_keys = console.api_keys.load_all()
    if not api_keys:
        click.echo("No API keys stored. Add one with: konsole keys add LABEL")
        return
    click.echo(f"{'Id':<14} {'Label':<24} {'Key':<20} {'Added'}")
    for api_key in api_keys:
        added = api_key.created_at.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{api_key.id:<14} {api_key.label:<24} {api_key.masked:<20} {added}")


@keys.command("remove")
@click.argument("key_id")
@click.pass_obj
def keys_remove(console: ConsoleContext, key_id: str) -> None:
    """Remove a stored API key."""
    if not console.api_keys.delete(key_id):
        click.secho(f"Error: No API key with id {key_id}", fg="red", err=True)
        sys.exit(1)
    click.echo(f"Removed API key {key_id}")


# ---------------------------------------------------------------------------
# datasets (local library)
# ---------------------------------------------------------------------------


@konsole.group()
def datasets() -> None:
    """Manage the local dataset library."""
    pass


@datasets.command("add")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Dataset name (default: file name without .csv).")
@click.option("--duplication-factor", default=None, help="Repeat each row this many times (>= 2).")
@click.pass_obj
def datasets_add(
    console: ConsoleContext, path: Path, name: Optional[str], duplication_factor: Optional[str]
) -> None:
    """Add a CSV file to the local library."""

    async def operation(workflow: ConsoleWorkflow) -> Any:
        return workflow.add_local_dataset(
            path.name, path.read_bytes(), dataset_name=name, duplication_factor=duplication_factor
        )

    dataset = _run(console, operation)
    click.echo(
        f"Dataset uploaded successfully! {dataset.name} "
        f"({dataset.row_count} rows, {format_file_size(dataset.file_size)}) id={dataset.id}"
    )


@datasets.command("list")
@click.option(
    "--format",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format.",
)
@click.pass_obj
def datasets_list(console: ConsoleContext, output_format: str) -> None:
    """List datasets in the local library, newest first."""
    items = console.datasets.load_all()
    if output_format == "json":
        click.echo(export_json(items, exclude={"csv_content"}))
        return
    if not items:
        click.echo("No datasets yet. Add one with: konsole datasets add FILE.csv")
        return

    click.echo(f"{'Id':<15} {'Name':<28} {'Rows':<8} {'Size':<12} {'Dup':<5} {'Uploaded'}")
    for dataset in items:
        uploaded = dataset.uploaded_at.strftime("%Y-%m-%d %H:%M")
        dup = f"x{dataset.duplication_factor}" if dataset.duplication_factor else "-"
        click.echo(
            f"{dataset.id:<15} {dataset.name:<28} {dataset.row_count:<8} "
            f"{format_file_size(dataset.file_size):<12} {dup:<5} {uploaded}"
        )


@datasets.command("delete")
@click.argument("dataset_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def datasets_delete(console: ConsoleContext, dataset_id: str, yes: bool) -> None:
    """Delete a dataset from the local library."""
    if not yes:
        click.confirm("Are you sure you want to delete this dataset?", abort=True)
    if not console.datasets.delete(dataset_id):
        click.secho(f"Error: No dataset with id {dataset_id}", fg="red", err=True)
        sys.exit(1)
    click.echo(f"Deleted dataset {dataset_id}")


@datasets.command("export")
@click.argument("dataset_id")
@click.option(
    "--output",
    "-o",
    default=".",
    type=click.Path(path_type=Path),
    help="File or directory to write the CSV to.",
)
@click.pass_obj
def datasets_export(console: ConsoleContext, dataset_id: str, output: Path) -> None:
    """Write a stored dataset's CSV back to disk."""
    dataset = console.datasets.get(dataset_id)
    if dataset is None:
        click.secho(f"Error: No dataset with id {dataset_id}", fg="red", err=True)
        sys.exit(1)
    written = dump_dataset_csv(dataset, output)
    click.echo(f"Wrote {written}")


# ---------------------------------------------------------------------------
# upload / run
# ---------------------------------------------------------------------------


@konsole.command()
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--key", "key_id", envvar="KONSOLE_KEY_ID", default=None, help=KEY_OPTION_HELP)
@click.option("--from-library", "library_id", default=None, help="Upload a dataset from the local library.")
@click.option("--name", default=None, help="Dataset name (default: file name without .csv).")
@click.option("--description", default=None, help="Optional dataset description.")
@click.option("--duplication-factor", default=None, help="Repeat each row this many times (>= 2).")
@click.pass_obj
def upload(
    console: ConsoleContext,
    path: Optional[Path],
    key_id: Optional[str],
    library_id: Optional[str],
    name: Optional[str],
    description: Optional[str],
    duplication_factor: Optional[str],
) -> None:
    """Upload a CSV dataset to the evaluation backend."""
    file_name: Optional[str] = None
    content: Optional[bytes] = None

    if library_id:
        dataset = console.datasets.get(library_id)
        if dataset is not None:
            file_name = dataset.file_name
            content = dataset.csv_content.encode("utf-8")
            name = name if name is not None else dataset.name
            if duplication_factor is None and dataset.duplication_factor:
                duplication_factor = str(dataset.duplication_factor)
    elif path is not None:
        if not path.is_file():
            click.secho(f"Error: File not found: {path}", fg="red", err=True)
            sys.exit(1)
        file_name = path.name
        content = path.read_bytes()

    async def operation(workflow: ConsoleWorkflow) -> Any:
        return await workflow.upload_dataset(
            key_id,
            file_name,
            content,
            dataset_name=name,
            description=description,
            duplication_factor=duplication_factor,
        )

    dataset_id = _run(console, operation)
    click.echo("File uploaded successfully! You can now run the evaluation.")
    click.echo(f"dataset_id: {dataset_id}")


@konsole.command()
@click.option("--key", "key_id", envvar="KONSOLE_KEY_ID", default=None, help=KEY_OPTION_HELP)
@click.option("--dataset-id", default=None, help="dataset_id returned by `konsole upload`.")
@click.option("--experiment", "experiment_name", default=None, help="Experiment (run) name.")
@click.option("--model", default=None, help="Model to evaluate.")
@click.option("--instructions", default=None, help="System instructions for the model.")
@click.option("--vector-store-ids", default=None, help="Comma-separated vector store ids for file_search.")
@click.option("--max-num-results", default=None, type=int, help="file_search result limit (default 3).")
@click.pass_obj
def run(
    console: ConsoleContext,
    key_id: Optional[str],
    dataset_id: Optional[str],
    experiment_name: Optional[str],
    model: Optional[str],
    instructions: Optional[str],
    vector_store_ids: Optional[str],
    max_num_results: Optional[int],
) -> None:
    """Start an evaluation run on an uploaded dataset."""

    async def operation(workflow: ConsoleWorkflow) -> Any:
        return await workflow.run_evaluation(
            key_id,
            dataset_id,
            experiment_name,
            model=model,
            instructions=instructions,
            vector_store_ids=vector_store_ids,
            max_num_results=max_num_results,
        )

    job = _run(console, operation)
    job_id = job.get("id") if isinstance(job, dict) else None
    click.echo(f"Evaluation job created! Job ID: {job_id}")
    click.echo("Track it with: konsole jobs --watch")


# ---------------------------------------------------------------------------
# jobs / show / assistant
# ---------------------------------------------------------------------------


def _print_job_card(card: JobCard) -> None:
    header = f"#{card.id} {card.run_name or '(unnamed)'}"
    status = _styled(card.status_label, card.status_bucket)
    line = f"{header:<40} {status}"
    if card.score_label:
        line += f"  {card.score_label}"
    click.echo(line)
    click.echo(f"    dataset: {card.dataset_name}  items: {card.total_items}  model: {card.model}")
    if card.error_message:
        click.echo(f"    error: {click.style(card.error_message, fg='red')}")
    for summary in card.summary:
        click.echo(f"    {summary.name}: {_styled(summary.text, summary.bucket)}")


def _print_job_details(card: JobCard) -> None:
    """Expanded detail lines shown by `konsole show`."""
    click.echo(
        f"    dataset id: {_or_missing(card.dataset_id)}  "
        f"batch job id: {_or_missing(card.batch_job_id)}  "
        f"organization id: {_or_missing(card.organization_id)}"
    )
    if card.instructions:
        click.echo(f"    instructions: {card.instructions}")
    if card.tool_types:
        click.echo(f"    tools: {card.tool_types}")
    click.echo(f"    created: {card.created}  updated: {card.updated}")


def _or_missing(value: Any) -> str:
    return "N/A" if value is None else str(value)


def _print_jobs(jobs: list[EvaluationJob]) -> None:
    if not jobs:
        click.echo("No evaluation jobs found.")
        return
    for job in jobs:
        _print_job_card(build_job_card(job))


def _print_snapshot(snapshot: JobSnapshot) -> None:
    click.echo()
    click.echo(f"Evaluation jobs (refresh #{snapshot.fetch_count})")
    click.echo("=" * 60)
    if snapshot.error:
        click.secho(f"Error: {snapshot.error}", fg="red")
    _print_jobs(snapshot.jobs)


@konsole.command()
@click.option("--key", "key_id", envvar="KONSOLE_KEY_ID", default=None, help=KEY_OPTION_HELP)
@click.option("--watch", is_flag=True, help="Keep refreshing while any job is pending or processing.")
@click.option("--interval", default=None, type=float, help="Refresh interval in seconds.")
@click.pass_obj
def jobs(console: ConsoleContext, key_id: Optional[str], watch: bool, interval: Optional[float]) -> None:
    """List evaluation jobs."""
    if not watch:
        _print_jobs(_run(console, lambda workflow: workflow.list_jobs(key_id)))
        return

    async def operation(workflow: ConsoleWorkflow) -> Any:
        poller = workflow.job_poller(
            key_id,
            interval=interval or console.settings.poll_interval_seconds,
            on_update=_print_snapshot,
        )
        try:
            await poller.start()
            return await poller.wait_until_settled()
        finally:
            await poller.stop()

    snapshot = _run(console, operation)
    click.echo()
    if snapshot.error:
        click.echo("Stopped watching after a failed refresh with no jobs in flight.")
    else:
        click.echo("No jobs in flight; stopped watching.")


def _print_results_table(table: ResultsTable, full: bool) -> None:
    if table.empty_message:
        click.echo(table.empty_message)
        return

    for row in table.rows:
        click.echo(f"[{row.index}] trace {row.trace_id}")
        for label, text in (
            ("Question", row.question),
            ("Answer", row.answer),
            ("Ground truth", row.ground_truth),
        ):
            click.echo(f"    {label}: {text.full if full else text.summary}")
        for name, cell in zip(table.columns, row.cells):
            line = f"    {name}: {_styled(cell.value, cell.bucket)}"
            if cell.comment:
                line += f" ({cell.comment.full if full else cell.comment.summary})"
            click.echo(line)
        click.echo()


@konsole.command()
@click.argument("job_id", type=int)
@click.option("--key", "key_id", envvar="KONSOLE_KEY_ID", default=None, help=KEY_OPTION_HELP)
@click.option("--full", is_flag=True, help="Show full text instead of truncated previews.")
@click.option(
    "--format",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format.",
)
@click.pass_obj
def show(
    console: ConsoleContext, job_id: int, key_id: Optional[str], full: bool, output_format: str
) -> None:
    """Show one evaluation job with its detailed results."""
    job = _run(console, lambda workflow: workflow.get_job(key_id, job_id))

    if output_format == "json":
        click.echo(json.dumps(job.model_dump(mode="json"), indent=2))
        return

    card = build_job_card(job)
    _print_job_card(card)
    _print_job_details(card)
    if job.assistant_id:
        click.echo(f"    assistant: {job.assistant_id} (see `konsole assistant {job.assistant_id}`)")
    if job.object_store_url:
        click.echo(f"    results: {job.object_store_url}")
    click.echo()
    _print_results_table(build_results_table(normalize_job(job)), full)


@konsole.command()
@click.argument("assistant_id")
@click.option("--key", "key_id", envvar="KONSOLE_KEY_ID", default=None, help=KEY_OPTION_HELP)
@click.pass_obj
def assistant(console: ConsoleContext, assistant_id: str, key_id: Optional[str]) -> None:
    """Show an assistant's configuration as JSON."""
    config = _run(console, lambda workflow: workflow.get_assistant(key_id, assistant_id))
    click.echo(json.dumps(config, indent=2))


def main() -> None:
    """Console script entry point."""
    configure_logging(get_settings().cli_log_level, stream=sys.stderr)
    konsole()

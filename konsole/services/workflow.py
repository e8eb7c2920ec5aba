"""Console operations with their preconditions.

Each operation validates the operator's selections and inputs before any
network call and raises PreconditionError with the message shown to the
operator. Network work is delegated to KonsoleClient.
"""

from typing import Optional

import structlog

from konsole.errors import PreconditionError
from konsole.models.dataset import (
    Dataset,
    dataset_name_from_file,
    is_csv_file,
    normalize_duplication_factor,
)
from konsole.models.job import (
    EvaluationCreateRequest,
    EvaluationJob,
    build_evaluation_config,
)
from konsole.services.console_client import SELECT_API_KEY_MESSAGE, KonsoleClient
from konsole.services.lifecycle import DEFAULT_POLL_INTERVAL, JobPoller, SnapshotListener
from konsole.services.store import APIKeyStore, DatasetStore

logger = structlog.get_logger(__name__)

KEY_NOT_FOUND_MESSAGE = "Selected API key not found"
SELECT_CSV_MESSAGE = "Please select a CSV file"
SELECT_FILE_MESSAGE = "Please select a file first"
DATASET_NAME_MESSAGE = "Please enter a dataset name"
UPLOAD_DATASET_MESSAGE = "Please upload a dataset first"
EXPERIMENT_NAME_MESSAGE = "Please enter an experiment name"
ASSISTANT_ID_MESSAGE = "Please enter an assistant id"


class ConsoleWorkflow:
    """Operator workflows over the local stores and the proxy client."""

    def __init__(
        self,
        client: KonsoleClient,
        api_keys: APIKeyStore,
        datasets: DatasetStore,
    ):
        self.client = client
        self.api_keys = api_keys
        self.datasets = datasets

    def resolve_api_key(self, key_id: Optional[str]) -> str:
        """Return the secret for a stored key id.

        Raises:
            PreconditionError: No key selected, or the id is not in the store
        """
        if not key_id:
            raise PreconditionError(SELECT_API_KEY_MESSAGE)
        api_key = self.api_keys.get(key_id)
        if api_key is None:
            raise PreconditionError(KEY_NOT_FOUND_MESSAGE)
        return api_key.key

    def add_local_dataset(
        self,
        file_name: str,
        content: Optional[bytes],
        dataset_name: Optional[str] = None,
        duplication_factor: Optional[str] = None,
    ) -> Dataset:
        """Read a CSV file into the local dataset store.

        The dataset name defaults to the file name without ``.csv``.
        """
        if content is None:
            raise PreconditionError(SELECT_FILE_MESSAGE)
        if not is_csv_file(file_name):
            raise PreconditionError(SELECT_CSV_MESSAGE)

        name = dataset_name if dataset_name is not None else dataset_name_from_file(file_name)
        if not name.strip():
            raise PreconditionError(DATASET_NAME_MESSAGE)

        try:
            dataset = Dataset.from_file(
                name=name,
                file_name=file_name,
                content=content,
                duplication_factor=duplication_factor,
            )
        except UnicodeDecodeError as e:
            logger.warning("dataset_read_failed", file_name=file_name, error=str(e))
            raise PreconditionError(f"Failed to upload dataset: {file_name} is not UTF-8 text") from e

        return self.datasets.add(dataset)

    async def upload_dataset(
        self,
        key_id: Optional[str],
        file_name: Optional[str],
        content: Optional[bytes],
        dataset_name: Optional[str] = None,
        description: Optional[str] = None,
        duplication_factor: Optional[str] = None,
    ) -> str:
        """Upload a CSV to the backend; returns the remote ``dataset_id``."""
        if not file_name or content is None:
            raise PreconditionError(SELECT_FILE_MESSAGE)
        if not key_id:
            raise PreconditionError(SELECT_API_KEY_MESSAGE)
        if not is_csv_file(file_name):
            raise PreconditionError(SELECT_CSV_MESSAGE)

        name = dataset_name if dataset_name is not None else dataset_name_from_file(file_name)
        if not name.strip():
            raise PreconditionError(DATASET_NAME_MESSAGE)

        api_key = self.resolve_api_key(key_id)
        return await self.client.upload_dataset(
            api_key,
            file_name=file_name,
            content=content,
            dataset_name=name,
            description=description,
            duplication_factor=normalize_duplication_factor(duplication_factor),
        )

    async def run_evaluation(
        self,
        key_id: Optional[str],
        dataset_id: Optional[str],
        experiment_name: Optional[str],
        model: Optional[str] = None,
        instructions: Optional[str] = None,
        vector_store_ids: Optional[str] = None,
        max_num_results: Optional[int] = None,
    ) -> dict:
        """Start an evaluation of an uploaded dataset; returns the created job."""
        if not key_id:
            raise PreconditionError(SELECT_API_KEY_MESSAGE)
        if not dataset_id:
            raise PreconditionError(UPLOAD_DATASET_MESSAGE)
        if not experiment_name or not experiment_name.strip():
            raise PreconditionError(EXPERIMENT_NAME_MESSAGE)

        api_key = self.resolve_api_key(key_id)
        try:
            numeric_dataset_id = int(str(dataset_id).strip())
        except ValueError as e:
            raise PreconditionError(f"Dataset id must be numeric: {dataset_id}") from e

        request = EvaluationCreateRequest(
            dataset_id=numeric_dataset_id,
            experiment_name=experiment_name.strip(),
            config=build_evaluation_config(
                model=model,
                instructions=instructions,
                vector_store_ids=vector_store_ids,
                max_num_results=max_num_results,
            ),
        )
        return await self.client.create_evaluation(api_key, request)

    async def list_jobs(self, key_id: Optional[str]) -> list[EvaluationJob]:
        return await self.client.list_evaluations(self.resolve_api_key(key_id))

    async def get_job(self, key_id: Optional[str], job_id: int) -> EvaluationJob:
        return await self.client.get_evaluation(self.resolve_api_key(key_id), job_id)

    async def get_assistant(self, key_id: Optional[str], assistant_id: str) -> dict:
        """Fetch the configuration of the assistant a job ran against."""
        if not assistant_id or not assistant_id.strip():
            raise PreconditionError(ASSISTANT_ID_MESSAGE)
        return await self.client.get_assistant(self.resolve_api_key(key_id), assistant_id.strip())

    def job_poller(
        self,
        key_id: Optional[str],
        interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Optional[SnapshotListener] = None,
    ) -> JobPoller:
        """Build a poller over the job list for the selected key."""
        api_key = self.resolve_api_key(key_id)

        async def fetch() -> list[EvaluationJob]:
            return await self.client.list_evaluations(api_key)

        return JobPoller(fetch, interval=interval, on_update=on_update)

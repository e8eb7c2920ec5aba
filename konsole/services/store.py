"""Client-local stores for datasets and API keys.

Each store keeps its whole collection as one JSON blob under a fixed storage
key in an injected backend. Every mutation is a read-modify-write of the full
collection; concurrent writers race and the last write wins. Deleting the
last item removes the blob instead of writing an empty list.
"""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Generic, Optional, Protocol, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from konsole.models.dataset import APIKey, Dataset

logger = structlog.get_logger(__name__)

DATASETS_STORAGE_KEY = "konsole_datasets"
API_KEYS_STORAGE_KEY = "konsole_api_keys"

ItemT = TypeVar("ItemT", bound=BaseModel)


class StorageBackend(Protocol):
    """Minimal key/value persistence, shaped like browser local storage."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryBackend:
    """In-process backend for tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class FileBackend:
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class CollectionStore(Generic[ItemT]):
    """Whole-collection repository over a storage backend."""

    storage_key: str
    item_type: type

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._adapter = TypeAdapter(list[self.item_type])

    def load_all(self) -> list[ItemT]:
        """Load the collection; an unreadable blob is logged and treated as empty."""
        raw = self.backend.get_item(self.storage_key)
        if raw is None:
            return []
        try:
            return self._adapter.validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning("store_load_failed", storage_key=self.storage_key, error=str(e))
            return []

    def save_all(self, items: list[ItemT]) -> None:
        if items:
            self.backend.set_item(
                self.storage_key, self._adapter.dump_json(items).decode("utf-8")
            )
        else:
            self.backend.remove_item(self.storage_key)

    def get(self, item_id: str) -> Optional[ItemT]:
        for item in self.load_all():
            if item.id == item_id:
                return item
        return None

    def delete(self, item_id: str) -> bool:
        """Delete by id. Returns False if no such item exists."""
        items = self.load_all()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return False
        self.save_all(remaining)
        logger.info("store_item_deleted", storage_key=self.storage_key, item_id=item_id)
        return True


class DatasetStore(CollectionStore[Dataset]):
    storage_key = DATASETS_STORAGE_KEY
    item_type = Dataset

    def add(self, dataset: Dataset) -> Dataset:
        """Persist a new dataset at the front of the collection."""
        self.save_all([dataset, *self.load_all()])
        logger.info(
            "dataset_saved",
            dataset_id=dataset.id,
            rows=dataset.row_count,
            size=dataset.file_size,
        )
        return dataset


class APIKeyStore(CollectionStore[APIKey]):
    storage_key = API_KEYS_STORAGE_KEY
    item_type = APIKey

    def add(self, label: str, key: str) -> APIKey:
        api_key = APIKey(
            id=uuid.uuid4().hex[:12],
            label=label.strip(),
            key=key.strip(),
            created_at=datetime.now(timezone.utc),
        )
        self.save_all([*self.load_all(), api_key])
        logger.info("api_key_saved", key_id=api_key.id, label=api_key.label)
        return api_key


def dump_dataset_csv(dataset: Dataset, destination: Path) -> Path:
    """Write a stored dataset's original CSV content to disk."""
    destination = Path(destination)
    if destination.is_dir():
        destination = destination / dataset.file_name
    destination.write_text(dataset.csv_content, encoding="utf-8")
    return destination


def export_json(items: list[BaseModel], exclude: Optional[set[str]] = None) -> str:
    """Serialize stored items as a JSON array, omitting ``exclude`` fields."""
    return json.dumps(
        [item.model_dump(mode="json", exclude=exclude) for item in items], indent=2
    )

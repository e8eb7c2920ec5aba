"""Client-local dataset and API key models."""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

CSV_SUFFIX = re.compile(r"\.csv$", re.IGNORECASE)
LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def count_rows(content: str) -> int:
    """Count data rows in CSV text: trimmed line count minus the header row."""
    lines = content.strip().split("\n")
    return max(0, len(lines) - 1)


def normalize_duplication_factor(value: Any) -> Optional[int]:
    """Return the duplication factor if it is an integer >= 2, else None.

    Only the leading integer counts, so "2.5" gives 2 and "3x" gives 3.
    """
    if value is None or isinstance(value, bool):
        return None
    match = LEADING_INT.match(str(value))
    if match is None:
        return None
    factor = int(match.group(1))
    return factor if factor > 1 else None


def dataset_name_from_file(file_name: str) -> str:
    """Default dataset name: the file name without its ``.csv`` extension."""
    return CSV_SUFFIX.sub("", file_name)


def is_csv_file(file_name: str) -> bool:
    return bool(CSV_SUFFIX.search(file_name))


class Dataset(BaseModel):
    """A QnA dataset kept in the client-local store."""

    id: str
    name: str = Field(..., min_length=1)
    file_name: str
    file_size: int = Field(..., ge=0, description="Size in bytes")
    row_count: int = Field(..., ge=0)
    uploaded_at: datetime
    csv_content: str
    duplication_factor: Optional[int] = Field(default=None, ge=2)

    @classmethod
    def from_file(
        cls,
        name: str,
        file_name: str,
        content: bytes,
        duplication_factor: Any = None,
        now: Optional[datetime] = None,
    ) -> "Dataset":
        """Create a dataset from raw file bytes.

        The id is the creation time in milliseconds, matching the ids the
        browser console generated.
        """
        now = now or datetime.now(timezone.utc)
        text = content.decode("utf-8")
        return cls(
            id=str(int(now.timestamp() * 1000)),
            name=name.strip(),
            file_name=file_name,
            file_size=len(content),
            row_count=count_rows(text),
            uploaded_at=now,
            csv_content=text,
            duplication_factor=normalize_duplication_factor(duplication_factor),
        )


class APIKey(BaseModel):
    """An API key for the evaluation backend."""

    id: str
    label: str
    key: str
    created_at: datetime

    @property
    def masked(self) -> str:
        """Key with all but the last four characters hidden."""
        if len(self.key) <= 4:
            return "*" * len(self.key)
        return "*" * (len(self.key) - 4) + self.key[-4:]

"""Canned evaluation payloads served in mock mode."""

import json
from pathlib import Path
from typing import Any

import structlog

from konsole.errors import FixtureNotFoundError

logger = structlog.get_logger(__name__)

DEFAULT_FIXTURE = "evaluation-sample-1.json"

# Evaluation ids that get the second sample; everything else gets the default
FIXTURE_BY_ID = {
    "2": "evaluation-sample-2.json",
    "44": "evaluation-sample-2.json",
}


def fixture_name_for(evaluation_id: str) -> str:
    return FIXTURE_BY_ID.get(evaluation_id, DEFAULT_FIXTURE)


def load_evaluation_fixture(evaluation_id: str, directory: Path) -> Any:
    """Load the canned payload for an evaluation id.

    Raises:
        FixtureNotFoundError: The fixture file is missing or is not valid JSON
    """
    file_name = fixture_name_for(evaluation_id)
    path = Path(directory) / file_name

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("mock_fixture_load_failed", fixture=file_name, error=str(e))
        raise FixtureNotFoundError(details=str(e)) from e

    logger.info("mock_fixture_served", evaluation_id=evaluation_id, fixture=file_name)
    return data

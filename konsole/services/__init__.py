"""Services package exports."""

from konsole.services.logging_service import configure_logging, get_logger
from konsole.services.normalizer import normalize, normalize_job

__all__ = [
    "configure_logging",
    "get_logger",
    "normalize",
    "normalize_job",
]

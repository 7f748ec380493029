"""
Utility helpers shared across KeelORM packages.
"""

from .logging import configure_logging, get_logger, time_call
from .naming import camel_to_snake, foreign_key_column
from .redaction import redact_params

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "foreign_key_column",
    "get_logger",
    "redact_params",
    "time_call",
]

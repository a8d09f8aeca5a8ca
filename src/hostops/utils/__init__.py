"""Shared helpers for hostops."""

from .data import (
    expand_strings,
    flatten_variables,
    get_property,
    merge_data,
)
from .logging import get_logger
from .retry import RetryExhausted, retry_until

__all__ = [
    "expand_strings",
    "flatten_variables",
    "get_property",
    "merge_data",
    "get_logger",
    "RetryExhausted",
    "retry_until",
]

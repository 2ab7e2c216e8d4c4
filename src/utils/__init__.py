"""Utility modules for the e-learning API."""

from src.utils.identifiers import (
    InvalidIdentifierError,
    ensure_utc_aware,
    parse_identifier,
)


__all__ = [
    "InvalidIdentifierError",
    "ensure_utc_aware",
    "parse_identifier",
]

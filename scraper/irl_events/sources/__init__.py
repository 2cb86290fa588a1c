"""Event source adapters."""

from .registry import SOURCES, Candidate, SourceAdapter, register_source
from . import jsonld, recurring  # noqa: F401  (register adapters)

__all__ = ["SOURCES", "Candidate", "SourceAdapter", "register_source"]

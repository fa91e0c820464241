"""
Error Taxonomy
Every failure the pipelines raise carries a machine-readable ``kind``
and a human-readable detail.
"""

from typing import Any


class RecommenderError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"

    def __init__(self, detail: Any):
        super().__init__(detail if isinstance(detail, str) else str(detail))
        self.detail = detail

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.detail}


class ValidationError(RecommenderError):
    """Caller input is malformed or out of range. Raised before any I/O."""

    kind = "validation_error"


class ProviderError(RecommenderError):
    """The embedding or reasoning service failed."""

    kind = "provider_error"


class StoreError(RecommenderError):
    """The vector store failed to persist or query."""

    kind = "store_error"


class ParseError(RecommenderError):
    """A reasoning response was not in the expected structured form."""

    kind = "parse_error"

"""Resource reconcilers and the shared operation template."""

from .base import (
    Diagnostic,
    Diagnostics,
    Resource,
    ResourceData,
    delete_ignoring_404,
    noop_delete,
    read_or_gone,
)

__all__ = [
    "Diagnostic",
    "Diagnostics",
    "Resource",
    "ResourceData",
    "delete_ignoring_404",
    "noop_delete",
    "read_or_gone",
]

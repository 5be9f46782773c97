"""Installed task catalog."""

from pipedeps.catalog.index import TaskCatalog, build_catalog
from pipedeps.catalog.types import CanonicalTask, TaskRecord

__all__ = [
    "TaskCatalog",
    "build_catalog",
    "CanonicalTask",
    "TaskRecord",
]

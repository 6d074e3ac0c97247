"""Policy persistence package for aumos-authz.

Provides the adapter contracts, CSV file adapters with optional filtered
loading, and the watcher contract for change notification.
"""
from __future__ import annotations

from aumos_authz.persist.adapter import Adapter, FilteredAdapter
from aumos_authz.persist.file_adapter import FileAdapter
from aumos_authz.persist.filtered_adapter import Filter, FilteredFileAdapter
from aumos_authz.persist.watcher import Watcher

__all__ = [
    "Adapter",
    "FileAdapter",
    "Filter",
    "FilteredAdapter",
    "FilteredFileAdapter",
    "Watcher",
]

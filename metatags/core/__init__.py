"""Core sync functionality."""

from .engine import SyncEngine, SyncObserver, SyncResult, is_empty, merge_properties
from .guard import Debouncer, OperationKind, RecentWrites, ReentrancyGuard
from .host import DocumentHost, HostWriteError
from .registry import TemplateRegistry, template_name
from .state import SyncState, SyncStateData
from .tags import TagIndex, current_tags, diff_tags, parse_reference, reference_names
from .vault import VaultHost, inline_tags

__all__ = [
    "Debouncer",
    "DocumentHost",
    "HostWriteError",
    "OperationKind",
    "RecentWrites",
    "ReentrancyGuard",
    "SyncEngine",
    "SyncObserver",
    "SyncResult",
    "SyncState",
    "SyncStateData",
    "TagIndex",
    "TemplateRegistry",
    "VaultHost",
    "current_tags",
    "diff_tags",
    "inline_tags",
    "is_empty",
    "merge_properties",
    "parse_reference",
    "reference_names",
    "template_name",
]

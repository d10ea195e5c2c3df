"""Remote mirror: HTTP client plus the push/pull/reconcile protocol."""

from .client import MirrorClient
from .sync import RemoteMirror, SyncError, SyncResult, decode_row, dedup_identifier

__all__ = [
    "MirrorClient",
    "RemoteMirror",
    "SyncError",
    "SyncResult",
    "decode_row",
    "dedup_identifier",
]

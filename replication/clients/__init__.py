"""REST clients for the source, target and status store endpoints."""

from replication.clients.source import SourcePoller
from replication.clients.status_store import StatusStoreClient
from replication.clients.target import TargetPublisher

__all__ = ["SourcePoller", "StatusStoreClient", "TargetPublisher"]

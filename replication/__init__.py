"""
Incremental document replication: source REST endpoint -> target REST endpoint.

This package contains the reconciliation and delivery engine and its REST
collaborators:

Modules:
    engine: Per-tick watermark maintenance, registration and delivery
    scheduler: APScheduler integration, one non-overlapping job
    alerts: Deduplicated operator alerting over SMTP
    fields: Per-collection document field mapping
    service: Wiring from settings to a running scheduler

Subpackages:
    clients: REST clients for the source, target and status store

Architecture:
    Each tick the engine
    1. bootstraps the watermark from the status store (first tick only)
    2. registers every document modified since the watermark as a pending
       status record, exactly once
    3. delivers every pending record to the target and records the outcome

    The status store is the source of truth. Delivery is at-least-once with
    idempotent-by-id overwrite on redelivery.

Usage:
    from replication.service import SyncService

Example:
    service = SyncService(load_settings("sync.yaml"))
    fatal_error = await service.run()

Error Handling:
    Connection failures abort only the current tick and trigger a
    deduplicated alert. Everything else stops the service. See
    core.exceptions for the hierarchy.
"""

__all__ = [
    "ReconciliationEngine",
    "SyncScheduler",
    "AlertGateway",
    "FieldMapping",
    "SyncService",
]

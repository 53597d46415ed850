"""
Pytest configuration and fixtures
"""

import pytest

from replication.alerts import AlertGateway
from replication.clients.source import SourcePoller
from replication.clients.status_store import StatusStoreClient
from replication.clients.target import TargetPublisher
from replication.engine import ReconciliationEngine
from replication.fields import FieldMapping

from tests.fakes import (
    FakeSource,
    FakeStatusStore,
    FakeTarget,
    RecordingSender,
    FIXED_NOW,
    SOURCE_URI,
    SYNC_URI,
    TARGET_URI,
)


@pytest.fixture
def status_store_service():
    return FakeStatusStore()


@pytest.fixture
def source_service():
    return FakeSource()


@pytest.fixture
def target_service():
    return FakeTarget()


@pytest.fixture
def fields():
    return FieldMapping(key_field="id", modified_field="lastModified", target_id_field="id")


@pytest.fixture
def status_store(status_store_service):
    return StatusStoreClient(SYNC_URI, client=status_store_service.client())


@pytest.fixture
def source(source_service):
    return SourcePoller(SOURCE_URI, client=source_service.client())


@pytest.fixture
def target(target_service, fields):
    return TargetPublisher(TARGET_URI, fields=fields, client=target_service.client())


@pytest.fixture
def alert_sender():
    return RecordingSender()


@pytest.fixture
def alerts(alert_sender):
    return AlertGateway(alert_sender)


@pytest.fixture
def engine(status_store, source, target, alerts, fields):
    return ReconciliationEngine(
        status_store=status_store,
        source=source,
        target=target,
        alerts=alerts,
        fields=fields,
        clock=lambda: FIXED_NOW,
    )

"""
Shared fixtures for gateway tests.
"""
from datetime import datetime
from unittest.mock import Mock

import pytest

from ai_gateway.config.loader import GatewayConfig
from ai_gateway.core.clock import ManualClock
from ai_gateway.storage.models import SubItem, Tag, WorkUnit
from ai_gateway.storage.repository import InMemorySnapshotStore


@pytest.fixture
def clock():
    return ManualClock(datetime(2024, 5, 1, 23, 30, 0))


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def config():
    return GatewayConfig(openai_api_key="sk-test")


@pytest.fixture
def provider():
    """Provider double returning fixed ids and answers."""
    fake = Mock()
    fake.upload_batch_file.return_value = "file-123"
    fake.create_batch.return_value = "batch-456"
    fake.respond.return_value = "Here is the answer."
    return fake


@pytest.fixture
def unit_factory():
    def make(
        unit_id="u1",
        fan_out=True,
        priority="low",
        checklist=(),
        dod=(),
        tags=(),
        updated_at=None,
        **kwargs
    ):
        return WorkUnit(
            id=unit_id,
            title=kwargs.pop("title", f"Unit {unit_id}"),
            priority=priority,
            fan_out=fan_out,
            tags=list(tags),
            checklist=[SubItem(id=f"{unit_id}-c{i}", text=text) for i, text in enumerate(checklist)],
            definition_of_done=[SubItem(id=f"{unit_id}-d{i}", text=text) for i, text in enumerate(dod)],
            updated_at=updated_at or datetime(2024, 1, 1),
            **kwargs
        )
    return make


@pytest.fixture
def deferral_tags():
    return [Tag(id="t-later", label="Later"), Tag(id="t-next", label="next"), Tag(id="t-now", label="now")]

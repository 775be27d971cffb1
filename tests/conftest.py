"""Shared fixtures for the test suite."""

import pytest
from fakes import FakeAiClient

from yotoforge.domain.entities import AiConfig, Icon
from yotoforge.infrastructure.persistence import InMemoryKeyValueStore


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def ai_config() -> AiConfig:
    return AiConfig(base_url="http://ai.local/v1", api_key="sk-test")


@pytest.fixture
def icons() -> list[Icon]:
    return [
        Icon(media_id="m-bus", title="Bus", tags=("vehicle", "transport")),
        Icon(media_id="m-heart", title="Heart", tags=("love",)),
        Icon(media_id="m-star", title="Star", tags=("night", "sky")),
    ]


@pytest.fixture
def fake_ai() -> FakeAiClient:
    return FakeAiClient()

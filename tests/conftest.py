"""
Pytest configuration and fixtures for docstore-client.

Provides cross-platform event loop configuration, an in-memory store and
mutators wired with a recording sleep so retry tests never wait.
"""

import asyncio
import random
import sys

import pytest

from docstore_client import BatchConfig, BatchExecutor, DocumentMutator, InMemoryDocumentStore
from docstore_client.config import Settings

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class RecordingSleep:
    """Async sleep replacement that records requested delays (seconds) and returns at once."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def delays_ms(self):
        return [round(s * 1000, 6) for s in self.calls]


@pytest.fixture
def settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def mutator(store, settings, fake_sleep):
    """Mutator with deterministic retries: no jitter, no real sleeping."""
    return DocumentMutator(
        store,
        {"type_name": "User", "retry": {"jitter_factor": 0.0}},
        settings=settings,
        sleep=fake_sleep,
        rng=random.Random(7),
    )


@pytest.fixture
def batch(mutator):
    return BatchExecutor(mutator, BatchConfig(max_batch_size=100))


@pytest.fixture
def tenant():
    """Partition key used across tests."""
    return "6b6a6a8a-3e2e-4a8e-9c3d-9ef0ffa4d111"

import os
import tempfile
from datetime import datetime, timedelta, timezone

os.environ.setdefault("CHATRELAY_CONFIG_DIR", tempfile.mkdtemp(prefix="chatrelay-test-"))

import pytest

from chatrelay.persistence import MemoryKeyValueStore


class StepClock:
    """Returns a time one second later on every call."""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def storage():
    return MemoryKeyValueStore()


@pytest.fixture
def clock():
    return StepClock()

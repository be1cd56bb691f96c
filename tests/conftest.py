import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
TESTS = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if str(TESTS) not in sys.path:
    sys.path.insert(0, str(TESTS))

from bridge.config import BridgeConfig
from bridge.ws_client import BridgeClient
from fakes import FakeGateway, FakeSleep


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def make_client(gateway, fake_sleep):
    def factory(**overrides):
        options = {"base_url": "https://bridge.example.com", "auth_token": "tok-1"}
        options.update(overrides)
        return BridgeClient(BridgeConfig(**options), connect_factory=gateway, sleep=fake_sleep)
    return factory

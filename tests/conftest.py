import pytest

import logger


class FakeMQTT:
    """Stands in for SensorHubMQTT; records every publish in order."""

    def __init__(self, prefix=""):
        self.prefix = prefix
        self.published = []

    def publish(self, topic, payload, retain=False):
        self.published.append((topic, payload))

    def send_heartbeat(self):
        self.publish(f"{self.prefix}heartbeat", b"")


class FakeEdgeSource:
    def __init__(self):
        self.when_activated = None
        self.when_deactivated = None
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def quiet_logger():
    logger.set_logging(False)
    yield
    logger.set_logging(True)


@pytest.fixture
def fake_mqtt():
    return FakeMQTT()

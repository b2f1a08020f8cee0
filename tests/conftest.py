# tests/conftest.py
import fakeredis
import pytest

from common import database, models  # noqa: F401  registers sys_logs on Base
from services.workers.core import Delivery, TaskRegistry
from services.workers.core.broker import RedisBroker


class FakeBroker:
    """In-memory broker: a finite list of deliveries, records acks and publications."""

    def __init__(self, bodies=(), fail_publish_for=()):
        self.events = []
        self.published = []
        self.dead_letters = []
        self.prefetch = None
        self.cancelled = False
        self.fail_publish_for = set(fail_publish_for)
        self._deliveries = [
            Delivery(message_id=f"{i}-0", body=body, _ack=self._record_ack)
            for i, body in enumerate(bodies, start=1)
        ]

    def _record_ack(self, message_id):
        self.events.append(("ack", message_id))

    def set_prefetch(self, count):
        self.prefetch = count

    def cancel(self):
        self.cancelled = True

    def deliveries(self):
        for delivery in self._deliveries:
            if self.cancelled:
                return
            yield delivery

    def publish(self, signature):
        if signature.name in self.fail_publish_for:
            raise ConnectionError("broker went away")
        self.events.append(("publish", signature.name))
        self.published.append(signature)

    def dead_letter(self, fields):
        self.dead_letters.append(fields)
        return f"dlq-{len(self.dead_letters)}"

    @property
    def published_names(self):
        return [s.name for s in self.published]


@pytest.fixture
def fake_broker_factory():
    return FakeBroker


@pytest.fixture
def registry():
    calls = []

    def add(*numbers):
        calls.append(("add", numbers))
        return sum(numbers)

    def fail(*args, **kwargs):
        calls.append(("fail", args))
        raise RuntimeError("boom")

    def noop(*args, **kwargs):
        calls.append(("noop", args))

    reg = TaskRegistry({"add": add, "fail": fail, "log": noop, "alert": noop})
    reg.calls = calls
    return reg


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis()
    yield client
    client.flushall()


@pytest.fixture
def redis_broker(redis_client):
    broker = RedisBroker(
        queue="test_tasks",
        group_name="test_group",
        consumer_name="worker-test",
        block_ms=0,
        reconnect_delay=0,
        client=redis_client,
        poll_interval=0,
    )
    broker.open()
    return broker


@pytest.fixture
def audit_db():
    """In-memory SQLite behind log_error."""
    engine = database.configure("sqlite://")
    database.Base.metadata.create_all(bind=engine)
    yield database.get_session_factory()
    database.configure("")


@pytest.fixture(autouse=True)
def no_audit_db_by_default():
    database.configure("")
    yield

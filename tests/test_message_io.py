# tests/test_message_io.py
from services.workers.core.message_io import pacing_delay, send_to_dlq


def test_pacing_counts_dots_only():
    assert pacing_delay(b"a.b..c", 1.0) == 3.0
    assert pacing_delay(b"abc", 1.0) == 0.0
    assert pacing_delay(b"...", 0) == 0.0
    assert pacing_delay(b"", 2.0) == 0.0


def test_send_to_dlq_builds_dead_letter_entry(fake_broker_factory):
    broker = fake_broker_factory()

    dead_id = send_to_dlq(broker, "7-0", b"\xffbroken", ValueError("JSON error"), "ConsumerLoop")

    assert dead_id == "dlq-1"
    entry = broker.dead_letters[0]
    assert entry["original_id"] == "7-0"
    assert entry["error"] == "JSON error"
    assert entry["source_worker"] == "ConsumerLoop"
    assert entry["raw_payload"] == "broken"
    assert entry["failed_at"].isdigit()


def test_send_to_dlq_never_raises():
    class DownBroker:
        def dead_letter(self, fields):
            raise ConnectionError("redis down")

    assert send_to_dlq(DownBroker(), "1-0", b"", "Empty payload") is None

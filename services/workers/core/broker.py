import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

import redis

from common.errors import BrokerConnectionError
from common.logger import debug_log
from common.schemas import TaskSignature

PAYLOAD_FIELD = "payload"
DLQ_MAXLEN = 10000


def _as_str(value) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


@dataclass
class Delivery:
    """One message handed to this consumer: raw body plus its acknowledgment handle."""
    message_id: str
    body: bytes
    _ack: Callable[[str], None] = field(repr=False)
    acked: bool = False
    redelivered: bool = False

    def ack(self):
        if self.acked:
            return
        self._ack(self.message_id)
        self.acked = True


class RedisBroker:
    """
    Redis Streams subscription for a single queue.

    queue -> stream key, one consumer group shared by all workers, one consumer name
    per process. The pending entries list (PEL) of the group is the broker-side set of
    delivered-but-unacknowledged messages.
    """

    def __init__(
            self,
            redis_url="redis://127.0.0.1:6379/0",
            queue="machinery_tasks",
            group_name="machinery_workers_group",
            consumer_name="worker",
            block_ms=2000,
            reconnect_delay=5.0,
            dlq_stream_key="sys_dead_letters",
            client: Optional[redis.Redis] = None,
            poll_interval=0.05,
            claim_idle_ms=60000,
    ):
        self.redis_url = redis_url
        self.queue = queue
        self.group_name = group_name
        self.consumer_name = consumer_name
        self.block_ms = block_ms
        self.reconnect_delay = reconnect_delay
        self.dlq_stream_key = dlq_stream_key
        self.poll_interval = poll_interval
        # how long an entry must sit unacknowledged before another consumer takes it over
        self.claim_idle_ms = claim_idle_ms

        self.redis_client = client
        self._prefetch = 1
        self._outstanding = set()
        self._cancelled = False
        self._closed = False

    @classmethod
    def from_settings(cls, settings, client=None):
        return cls(
            redis_url=settings.redis_url,
            queue=settings.default_queue,
            group_name=settings.group_name,
            consumer_name=settings.consumer_name,
            block_ms=settings.block_ms,
            reconnect_delay=settings.reconnect_delay,
            dlq_stream_key=settings.dlq_stream_key,
            claim_idle_ms=settings.claim_idle_ms,
            client=client,
        )

    # --- lifecycle ---

    def open(self):
        """
        Connect and make sure the stream and consumer group exist.

        :raises BrokerConnectionError: Redis unreachable or group creation refused
        """
        try:
            if self.redis_client is None:
                self.redis_client = redis.Redis.from_url(self.redis_url)
            self.redis_client.ping()
        except redis.exceptions.RedisError as e:
            raise BrokerConnectionError(f"Failed to connect to broker: {e}") from e

        self._ensure_group()
        self._cancelled = False
        self._closed = False
        debug_log(f"Consumer group {self.group_name} ready on {self.queue}", "INFO")
        return self

    def _ensure_group(self):
        try:
            self.redis_client.xgroup_create(self.queue, self.group_name, id="0", mkstream=True)
        except redis.exceptions.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise BrokerConnectionError(f"Failed to register a consumer: {e}") from e
        except redis.exceptions.RedisError as e:
            raise BrokerConnectionError(f"Failed to register a consumer: {e}") from e

    def cancel(self):
        """End the subscription; deliveries() returns at its next check."""
        self._cancelled = True

    def close(self):
        if self._closed:
            return
        self.cancel()
        self._closed = True
        if self.redis_client is not None:
            self.redis_client.close()

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # --- consuming ---

    def set_prefetch(self, count: int):
        """Max number of deliveries this consumer may hold unacknowledged."""
        if count < 1:
            raise ValueError("Prefetch count must be at least 1")
        self._prefetch = count

    @property
    def prefetch(self):
        return self._prefetch

    def outstanding(self) -> int:
        return len(self._outstanding)

    def pending_count(self) -> int:
        """Broker-side count of delivered, unacknowledged entries in the group."""
        info = self.redis_client.xpending(self.queue, self.group_name)
        return int(info["pending"])

    def ack(self, message_id):
        try:
            self.redis_client.xack(self.queue, self.group_name, message_id)
        finally:
            # the slot is released even when XACK fails; the entry stays in the
            # PEL and is reclaimed by XAUTOCLAIM once it has been idle long enough
            self._outstanding.discard(message_id)

    def deliveries(self, recover=True) -> Iterator[Delivery]:
        """
        Lazy, unbounded stream of deliveries.

        First replays pending entries (this consumer's own, then idle ones of any
        consumer in the group), then reads new ones. Never reads more than
        prefetch - outstanding entries, so the group's PEL for this consumer stays
        within the prefetch bound.
        """
        if recover:
            yield from self.recover_pending()

        while not self._cancelled:
            available = self._prefetch - len(self._outstanding)
            if available <= 0:
                # all slots held by unacknowledged deliveries
                time.sleep(self.poll_interval)
                continue

            try:
                response = self.redis_client.xreadgroup(
                    self.group_name,
                    self.consumer_name,
                    {self.queue: ">"},
                    count=available,
                    block=self.block_ms or None,
                )
            except redis.exceptions.ResponseError as e:
                if "NOGROUP" in str(e):
                    debug_log(f"Consumer group missing on {self.queue}, recreating", "WARNING")
                    self._ensure_group()
                    continue
                raise
            except redis.exceptions.RedisError as e:
                if self._cancelled:
                    return
                debug_log(f"Broker read failed: {e}", "ERROR")
                time.sleep(self.reconnect_delay)
                continue

            if not response:
                if not self.block_ms:
                    time.sleep(self.poll_interval)
                continue

            for _stream, messages in response:
                yield from self._deliveries_from(messages)

    def recover_pending(self) -> Iterator[Delivery]:
        """
        Entries delivered but never acknowledged.

        1. this consumer name's own PEL (read from id 0)
        2. entries idle for claim_idle_ms under any consumer name, e.g. a previous
           process whose name carried another pid, taken over with XAUTOCLAIM

        :raises BrokerConnectionError: Redis failed while reading the pending list
        """
        try:
            yield from self._recover_own()
            yield from self._claim_idle()
        except redis.exceptions.RedisError as e:
            raise BrokerConnectionError(f"Failed to recover pending deliveries: {e}") from e

    def _recover_own(self) -> Iterator[Delivery]:
        last_id = "0"
        while not self._cancelled:
            response = self.redis_client.xreadgroup(
                self.group_name,
                self.consumer_name,
                {self.queue: last_id},
                count=self._prefetch,
            )
            if not response:
                return
            _stream, messages = response[0]
            if not messages:
                return

            debug_log(f"♻️  [{self.consumer_name}] recovering {len(messages)} pending deliveries", "WARNING")
            last_id = _as_str(messages[-1][0])
            yield from self._deliveries_from(messages, redelivered=True)

    def _claim_idle(self) -> Iterator[Delivery]:
        start_id = "0-0"
        while not self._cancelled:
            next_id, messages, *_ = self.redis_client.xautoclaim(
                self.queue,
                self.group_name,
                self.consumer_name,
                min_idle_time=self.claim_idle_ms,
                start_id=start_id,
                count=self._prefetch,
            )
            # entries deleted from the stream are skipped
            messages = [(message_id, data) for message_id, data in messages if data]
            if messages:
                debug_log(f"♻️  [{self.consumer_name}] claimed {len(messages)} idle deliveries", "WARNING")
                yield from self._deliveries_from(messages, redelivered=True)

            start_id = _as_str(next_id)
            if start_id == "0-0":
                return

    def _deliveries_from(self, messages, redelivered=False) -> Iterator[Delivery]:
        # the whole batch is in the PEL from here on
        batch = [(_as_str(message_id), message_data) for message_id, message_data in messages]
        self._outstanding.update(message_id for message_id, _ in batch)
        for message_id, message_data in batch:
            yield self._delivery(message_id, message_data, redelivered=redelivered)

    def _delivery(self, message_id, message_data, redelivered=False) -> Delivery:
        # entries deleted from the stream come back with no fields
        message_data = message_data or {}
        body = message_data.get(PAYLOAD_FIELD.encode(), message_data.get(PAYLOAD_FIELD)) or b""
        if isinstance(body, str):
            body = body.encode()

        return Delivery(message_id=message_id, body=body, _ack=self.ack, redelivered=redelivered)

    # --- publishing ---

    def publish(self, signature: TaskSignature, queue: Optional[str] = None) -> str:
        """Enqueue a task signature as a new message; returns its stream id."""
        stream_key = queue or self.queue
        message_id = self.redis_client.xadd(stream_key, {PAYLOAD_FIELD: signature.to_payload()})
        return _as_str(message_id)

    def dead_letter(self, fields: dict) -> Optional[str]:
        if not self.dlq_stream_key:
            return None
        message_id = self.redis_client.xadd(self.dlq_stream_key, fields, maxlen=DLQ_MAXLEN)
        return _as_str(message_id)

import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from common.errors import DecodeError, TaskNotRegistered
from common.logger import debug_log, log_error
from common.schemas import TaskSignature
from services.workers.core.message_io import decode_delivery, pacing_delay, send_to_dlq

ACK_EARLY = "early"
ACK_LATE = "late"

# Outcome statuses
DECODE_ERROR = "decode_error"
NOT_REGISTERED = "not_registered"
SUCCEEDED = "succeeded"
FAILED = "failed"
CRASHED = "crashed"


@dataclass
class Outcome:
    """What happened to one delivery."""
    status: str
    signature: Optional[TaskSignature] = None
    result: Any = None
    error: Optional[Exception] = None
    published: List[TaskSignature] = field(default_factory=list)


class ConsumerLoop:
    """
    Drains one queue: receive -> ack -> pace -> decode -> dispatch -> finalize.

    Acknowledgment policy
    ---------------------
    ack_mode="early" (default) acks each delivery the moment it is received, before
    the handler runs. The broker forgets the message immediately, so if the worker
    dies while the handler runs, that task is lost and is NOT redelivered.

    ack_mode="late" acks only after finalize. A crash then leaves the delivery in the
    pending list. The next start takes it over, under the same consumer name at once,
    under any other name once it has been idle for claim_idle_ms: at-least-once, and a
    task may run twice.

    Deliveries are processed one at a time, in broker order. At most prefetch_count
    deliveries are held by this consumer without acknowledgment.
    """

    def __init__(self, broker, dispatcher, finalizer, prefetch_count=3, ack_mode=ACK_EARLY, pace_unit=1.0,
                 sleep=time.sleep):
        if ack_mode not in (ACK_EARLY, ACK_LATE):
            raise ValueError(f"Unknown ack mode: {ack_mode}")
        self.broker = broker
        self.dispatcher = dispatcher
        self.finalizer = finalizer
        self.prefetch_count = prefetch_count
        self.ack_mode = ack_mode
        self.pace_unit = pace_unit
        self._sleep = sleep
        self._stopped = False
        self.processed = 0

    def run(self):
        """Blocks until the subscription ends or stop() is called."""
        self._stopped = False
        self.broker.set_prefetch(self.prefetch_count)

        debug_log(" [*] Waiting for messages. To exit press CTRL+C", "INFO")
        for delivery in self.broker.deliveries():
            if self._stopped:
                # left in the pending list; taken over by the next start (XAUTOCLAIM)
                break
            self.process(delivery)
            if self._stopped:
                break

        debug_log(f"Consumer loop stopped after {self.processed} deliveries", "INFO")

    def stop(self):
        """Finish the current delivery, then leave run(). No mid-task cancellation."""
        self._stopped = True
        self.broker.cancel()

    def process(self, delivery) -> Outcome:
        """Run one delivery through the pipeline. Never raises."""
        marker = "♻️ redelivered" if delivery.redelivered else "📩 Received new"
        debug_log(f"{marker} message {delivery.message_id}: {delivery.body[:200]!r}", "REQUEST")
        self.processed += 1

        if self.ack_mode == ACK_EARLY:
            self._ack(delivery)

        try:
            return self._process(delivery)
        except Exception as e:
            log_error("ConsumerLoop", f"Unexpected failure on {delivery.message_id}: {e}")
            return Outcome(status=CRASHED, error=e)
        finally:
            if self.ack_mode == ACK_LATE:
                self._ack(delivery)

    def _process(self, delivery) -> Outcome:
        # 1. Placeholder throttle, proportional to the '.' count of the raw body
        delay = pacing_delay(delivery.body, self.pace_unit)
        if delay:
            self._sleep(delay)

        # 2. Decode
        try:
            signature = decode_delivery(delivery)
        except DecodeError as e:
            debug_log(f"Failed to decode {delivery.message_id}: {e}", "ERROR")
            send_to_dlq(self.broker, delivery.message_id, delivery.body, e, "ConsumerLoop")
            return Outcome(status=DECODE_ERROR, error=e)

        # 3. Dispatch
        result, error = self.dispatcher.dispatch(signature)
        if isinstance(error, TaskNotRegistered):
            debug_log(str(error), "WARNING")
            send_to_dlq(self.broker, delivery.message_id, delivery.body, error, "ConsumerLoop")
            return Outcome(status=NOT_REGISTERED, signature=signature, error=error)

        # 4. Finalize: trigger OnSuccess or OnError chain
        published = self.finalizer.finalize(signature, result, error)
        return Outcome(
            status=FAILED if error is not None else SUCCEEDED,
            signature=signature,
            result=result,
            error=error,
            published=published,
        )

    def _ack(self, delivery):
        try:
            delivery.ack()
        except Exception as e:
            log_error("ConsumerLoop", f"Failed to ack {delivery.message_id}: {e}")

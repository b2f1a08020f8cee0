import time

from common.logger import debug_log
from common.schemas import TaskSignature

PACE_BYTE = b"."


def decode_delivery(delivery) -> TaskSignature:
    """
    Turn a delivery body into a TaskSignature.

    :raises DecodeError: empty body, invalid JSON, or a shape that is not a signature
    """
    return TaskSignature.from_payload(delivery.body)


def pacing_delay(body: bytes, unit: float) -> float:
    """Seconds to wait before dispatch: one unit per '.' in the raw body."""
    if not unit or not body:
        return 0.0
    return body.count(PACE_BYTE) * unit


def send_to_dlq(broker, message_id, raw_payload, error_msg, source="Unknown"):
    """
    💀 Copy a rejected delivery to the dead-letter stream.
    The delivery itself is acknowledged by the caller; this never raises.
    """
    try:
        payload_str = "None"
        if raw_payload:
            payload_str = raw_payload.decode("utf-8", errors="ignore") if isinstance(raw_payload, bytes) else str(
                raw_payload)

        dead_msg = {
            "original_id": str(message_id),
            "error": str(error_msg),
            "source_worker": source,
            "failed_at": str(int(time.time())),
            "raw_payload": payload_str,
        }

        dead_id = broker.dead_letter(dead_msg)
        if dead_id:
            debug_log(f"💀 Moved to dead-letter stream: {message_id}", "WARNING")
        return dead_id

    except Exception as e:
        debug_log(f"Failed to write dead-letter entry: {e}", "ERROR")
        return None

from .registry import Handler, FunctionHandler, TaskRegistry
from .broker import Delivery, RedisBroker
from .message_io import decode_delivery, pacing_delay, send_to_dlq
from .dispatcher import Dispatcher
from .finalizer import Finalizer
from .runner import ConsumerLoop, Outcome

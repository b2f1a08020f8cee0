import signal
import sys

from common import database
from common.config import WorkerSettings
from common.errors import BrokerConnectionError
from common.logger import debug_log, setup_logging
from services.workers.core import ConsumerLoop, Dispatcher, Finalizer, RedisBroker, TaskRegistry
from services.workers.tasks import register_builtin_tasks


def build_registry():
    registry = TaskRegistry()
    register_builtin_tasks(registry)
    return registry


def install_signal_handlers(loop):
    def _shutdown(signum, frame):
        debug_log(f"Received signal {signum}, stopping after the current task...", "WARNING")
        loop.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def start_worker(settings=None, registry=None, client=None, handle_signals=True):
    """
    Launch a worker: subscribe to the default queue and process every task
    registered in the registry until the subscription ends.

    :raises BrokerConnectionError: broker unreachable or consumer group setup failed
    """
    settings = settings or WorkerSettings.from_env()
    registry = registry or build_registry()
    setup_logging(settings.log_level)
    database.configure(settings.database_url)

    debug_log("=" * 40, "INFO")
    debug_log("Launching a worker with the following settings:", "INFO")
    debug_log(f"- BrokerURL: {settings.masked_redis_url()}", "INFO")
    debug_log(f"- DefaultQueue: {settings.default_queue}", "INFO")
    debug_log(f"- Consumer: {settings.consumer_name} (group {settings.group_name})", "INFO")
    debug_log(f"- Prefetch: {settings.prefetch_count} | AckMode: {settings.ack_mode}", "INFO")
    debug_log(f"- Tasks: {', '.join(registry.names()) or '(none)'}", "INFO")

    # the with block closes the connection on every exit path
    with RedisBroker.from_settings(settings, client=client) as broker:
        loop = ConsumerLoop(
            broker,
            Dispatcher(registry),
            Finalizer(broker),
            prefetch_count=settings.prefetch_count,
            ack_mode=settings.ack_mode,
            pace_unit=settings.pace_unit,
        )
        if handle_signals:
            install_signal_handlers(loop)
        loop.run()
    return loop


def main():
    try:
        start_worker()
    except BrokerConnectionError as e:
        debug_log(f"🔌 {e}", "ERROR")
        sys.exit(1)


if __name__ == "__main__":
    main()

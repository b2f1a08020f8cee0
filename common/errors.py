# common/errors.py


class WorkerError(Exception):
    """Base class for every error raised or reported by the worker."""


class DecodeError(WorkerError):
    """Delivery payload is not a valid task signature."""

    def __init__(self, message, raw_payload=b""):
        super().__init__(message)
        self.raw_payload = raw_payload


class TaskNotRegistered(WorkerError):
    """No handler is registered under the requested task name."""

    def __init__(self, name):
        super().__init__(f"Task with a name '{name}' not registered")
        self.name = name


class TaskExecutionError(WorkerError):
    """The handler raised; the original exception is kept as __cause__."""

    def __init__(self, name, message):
        super().__init__(f"Task '{name}' failed: {message}")
        self.name = name


class BrokerConnectionError(WorkerError):
    """Broker connection, stream or consumer group setup failed. Fatal at startup."""

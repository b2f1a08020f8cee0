# services/workers/tasks/builtin.py
from common.logger import debug_log


def add(*numbers):
    """Sum of all positional arguments."""
    return sum(numbers)


def log(*args, **kwargs):
    """Write the arguments to the worker log; used as a chain terminator."""
    debug_log(f"📝 log task: args={list(args)} kwargs={kwargs}", "INFO")
    return None


def alert(*args, **kwargs):
    """Raise the arguments at WARNING level; typical OnError target."""
    message = kwargs.get("message") or " ".join(str(a) for a in args) or "task failed"
    debug_log(f"🚨 alert: {message}", "WARNING")
    return message


def register_builtin_tasks(registry):
    for fn in (add, log, alert):
        registry.register(fn.__name__, fn)
    return registry

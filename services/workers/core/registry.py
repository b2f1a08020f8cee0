from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Mapping, runtime_checkable


@runtime_checkable
class Handler(Protocol):
    """Executable task: returns the result, raises on failure."""

    def run(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
        ...


class FunctionHandler:
    """Adapts a plain function to the Handler interface: fn(*args, **kwargs)."""

    def __init__(self, fn: Callable[..., Any]):
        self.fn = fn

    def run(self, args, kwargs):
        return self.fn(*args, **kwargs)

    def __repr__(self):
        return f"FunctionHandler({getattr(self.fn, '__name__', self.fn)!r})"


class TaskRegistry:
    """
    Explicit name -> handler mapping, built at startup and handed to the Dispatcher.
    Read-only once the worker loop is running.
    """

    def __init__(self, handlers: Optional[Dict[str, Any]] = None):
        self._handlers: Dict[str, Handler] = {}
        for name, handler in (handlers or {}).items():
            self.register(name, handler)

    def register(self, name: str, handler) -> Handler:
        """
        :param name: task name carried in the signature's Name field
        :param handler: Handler object, or a callable wrapped in FunctionHandler
        :raises ValueError: empty or duplicate name, or a handler that is neither
        """
        if not name:
            raise ValueError("Task name must not be empty")
        if name in self._handlers:
            raise ValueError(f"Task '{name}' is already registered")

        if not isinstance(handler, Handler):
            if not callable(handler):
                raise ValueError(f"Handler for '{name}' must be callable or expose run(args, kwargs)")
            handler = FunctionHandler(handler)

        self._handlers[name] = handler
        return handler

    def task(self, name: Optional[str] = None):
        """Decorator form: @registry.task() or @registry.task("custom_name")."""
        def decorator(fn):
            self.register(name or fn.__name__, fn)
            return fn
        return decorator

    def lookup(self, name: str) -> Optional[Handler]:
        if not name:
            return None
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, name):
        return name in self._handlers

    def __len__(self):
        return len(self._handlers)

# tests/test_registry.py
import pytest

from services.workers.core.registry import FunctionHandler, Handler, TaskRegistry


class Multiply:
    def run(self, args, kwargs):
        return args[0] * args[1]


def test_plain_function_is_wrapped():
    reg = TaskRegistry()
    handler = reg.register("add", lambda a, b: a + b)

    assert isinstance(handler, FunctionHandler)
    assert reg.lookup("add").run((2, 3), {}) == 5


def test_handler_object_is_kept_as_is():
    reg = TaskRegistry()
    obj = Multiply()
    reg.register("mul", obj)

    assert reg.lookup("mul") is obj
    assert isinstance(obj, Handler)


def test_function_handler_passes_kwargs():
    handler = FunctionHandler(lambda greeting, name="world": f"{greeting} {name}")
    assert handler.run(("hello",), {"name": "worker"}) == "hello worker"


def test_lookup_unknown_and_empty_names():
    reg = TaskRegistry({"add": sum})

    assert reg.lookup("ghost") is None
    assert reg.lookup("") is None


def test_decorator_registers_under_function_name_or_alias():
    reg = TaskRegistry()

    @reg.task()
    def ping():
        return "pong"

    @reg.task("custom.echo")
    def echo(value):
        return value

    assert reg.names() == ["custom.echo", "ping"]
    assert ping() == "pong"
    assert reg.lookup("custom.echo").run(("x",), {}) == "x"


@pytest.mark.parametrize("name, handler", [
    ("", sum),
    ("bad", 42),
])
def test_invalid_registration(name, handler):
    with pytest.raises(ValueError):
        TaskRegistry().register(name, handler)


def test_duplicate_name_is_rejected():
    reg = TaskRegistry({"add": sum})
    with pytest.raises(ValueError):
        reg.register("add", sum)
    assert len(reg) == 1 and "add" in reg

# tests/test_dispatcher.py
from common.errors import TaskExecutionError, TaskNotRegistered
from common.schemas import TaskSignature
from services.workers.core.dispatcher import Dispatcher


def test_add_returns_result_without_error(registry):
    s = TaskSignature.from_payload(b'{"Name":"add","Args":[2,3],"OnSuccess":[{"Name":"log"}]}')

    assert Dispatcher(registry).dispatch(s) == (5, None)


def test_handler_exception_becomes_execution_error(registry):
    result, error = Dispatcher(registry).dispatch(TaskSignature(name="fail", args=(1,)))

    assert result is None
    assert isinstance(error, TaskExecutionError)
    assert isinstance(error.__cause__, RuntimeError)
    assert "boom" in str(error)


def test_unregistered_task_invokes_nothing(registry):
    result, error = Dispatcher(registry).dispatch(TaskSignature(name="ghost"))

    assert result is None
    assert isinstance(error, TaskNotRegistered)
    assert error.name == "ghost"
    assert registry.calls == []


def test_empty_name_is_a_lookup_failure(registry):
    _, error = Dispatcher(registry).dispatch(TaskSignature())
    assert isinstance(error, TaskNotRegistered)


def test_any_object_with_lookup_works_as_registry():
    class StaticRegistry:
        def lookup(self, name):
            class Echo:
                def run(self, args, kwargs):
                    return name, list(args), kwargs
            return Echo()

    result, error = Dispatcher(StaticRegistry()).dispatch(TaskSignature(name="x", args=(1,), kwargs={"k": 2}))

    assert error is None
    assert result == ("x", [1], {"k": 2})


def test_handler_receives_mutable_copy_of_kwargs(registry):
    def mutate(**kwargs):
        kwargs["added"] = True
        return kwargs

    registry.register("mutate", mutate)
    s = TaskSignature(name="mutate", kwargs={"a": 1})

    result, _ = Dispatcher(registry).dispatch(s)

    assert result == {"a": 1, "added": True}
    assert s.kwargs == {"a": 1}

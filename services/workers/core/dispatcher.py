from typing import Any, Optional, Tuple

from common.errors import TaskExecutionError, TaskNotRegistered, WorkerError
from common.logger import debug_log
from common.schemas import TaskSignature


class Dispatcher:
    """
    Resolves a signature's Name through the registry and runs the handler.

    :param registry: any object with lookup(name) -> handler or None
    """

    def __init__(self, registry):
        self.registry = registry

    def dispatch(self, signature: TaskSignature) -> Tuple[Any, Optional[WorkerError]]:
        """
        :return: (result, None) on success,
                 (None, TaskNotRegistered) when no handler exists (nothing is invoked),
                 (None, TaskExecutionError) when the handler raised
        """
        handler = self.registry.lookup(signature.name)
        if handler is None:
            return None, TaskNotRegistered(signature.name)

        debug_log(f"🚀 Started processing {signature.name}", "REQUEST")
        try:
            result = handler.run(signature.args, dict(signature.kwargs))
        except Exception as e:
            error = TaskExecutionError(signature.name, e)
            error.__cause__ = e
            return None, error

        return result, None

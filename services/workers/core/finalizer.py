from typing import Any, List, Optional

from common.logger import debug_log, log_error
from common.schemas import TaskSignature


class Finalizer:
    """
    Routes an execution outcome to its follow-up chain.

    Error -> every OnError entry is published, in order.
    Success -> every OnSuccess entry is published, in order.
    Only one branch is walked per call.

    :param publisher: any object with publish(TaskSignature)
    """

    def __init__(self, publisher):
        self.publisher = publisher

    def finalize(self, signature: TaskSignature, result: Any, error: Optional[Exception]) -> List[TaskSignature]:
        """
        :return: follow-up signatures that were published successfully
        """
        if error is not None:
            debug_log(f"❌ Failed processing {signature.name}", "WARNING")
            debug_log(f"Error = {error}", "WARNING")
            chain = signature.on_error
        else:
            debug_log(f"✅ Finished processing {signature.name}", "SUCCESS")
            debug_log(f"Result = {result!r}", "INFO")
            chain = signature.on_success

        return self._publish_chain(signature, chain)

    def _publish_chain(self, parent: TaskSignature, chain) -> List[TaskSignature]:
        published = []
        # best-effort: one failed publish does not stop the rest of the chain
        for follow_up in chain:
            try:
                self.publisher.publish(follow_up)
            except Exception as e:
                log_error("Finalizer", f"Failed to publish follow-up '{follow_up.name}' of '{parent.name}': {e}",
                          parent.name)
                continue
            debug_log(f" -> [chain] {parent.name} -> {follow_up.name}", "INFO")
            published.append(follow_up)
        return published

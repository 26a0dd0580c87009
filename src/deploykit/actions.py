import inspect
from enum import Enum
from typing import Any, Optional

from .models import Result


class Action(str, Enum):
    """Lifecycle actions a controller may implement.

    ``SETUP``, ``DEPLOY`` and ``OUT`` are the three passes of a deployment;
    the other members each drive their own pass.
    """
    SETUP = "setup"
    DEPLOY = "deploy"
    UNDEPLOY = "undeploy"
    VALIDATE = "validate"
    STATUS = "status"
    OUT = "out"

    @property
    def input_key(self) -> str:
        """Component attribute holding this action's variable definitions."""
        if self is Action.SETUP:
            return "setup"
        if self is Action.OUT:
            return "output"
        return "input"

    def handler(self, controller: Any):
        """The bound method implementing this action, or ``None``."""
        fn = getattr(controller, self.value, None)
        return fn if callable(fn) else None

    async def invoke(self, controller: Any, data: Any, pipeline: Any) -> Optional[Result]:
        """Run the action on *controller*; a missing handler is a no-op."""
        fn = self.handler(controller)
        if fn is None:
            return None
        res = fn(data, pipeline)
        if inspect.isawaitable(res):
            res = await res
        return res

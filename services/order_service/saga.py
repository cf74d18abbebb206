import structlog
from shared.observability import order_lifecycle_failures_total
from .exceptions import (
    OrderLifecycleError,
    OrderNotFoundError,
    PartialCompletionError,
    WriteFailureError,
)
from .repository import DocumentNotFound

logger = structlog.get_logger(__name__)

class ChainStep:
    def __init__(self, name, action):
        self.name = name
        self.action = action

class LifecycleChain:
    """
    Runs dependent writes strictly in order and stops at the first failure.

    Unlike a checkout saga there are no compensations: steps that already
    succeeded stay applied, and the raised error lists them in ``completed``.
    """
    def __init__(self, order_id: str):
        self.order_id = order_id
        self.steps = []

    def add_step(self, name: str, action):
        """Builder pattern to add a step."""
        self.steps.append(ChainStep(name, action))
        return self

    async def execute(self, ctx: dict) -> list[str]:
        """Executes steps sequentially and returns the names of the completed steps."""
        completed = []
        for step in self.steps:
            try:
                await step.action(ctx)
            except Exception as e:
                error = self._classify(step.name, e, completed)
                logger.error(
                    "lifecycle_step_failed",
                    order_id=self.order_id,
                    stage=step.name,
                    completed=completed,
                    error=str(e),
                )
                order_lifecycle_failures_total.labels(stage=step.name).inc()
                if error is e:
                    raise
                raise error from e
            completed.append(step.name)
        return completed

    def _classify(self, stage: str, error: Exception, completed: list[str]) -> OrderLifecycleError:
        if isinstance(error, OrderLifecycleError) and not completed:
            return error
        if not completed:
            if isinstance(error, DocumentNotFound):
                return OrderNotFoundError(self.order_id, stage=stage, cause=error)
            return WriteFailureError(
                self.order_id, stage, f"{stage} failed for order {self.order_id}: {error}", cause=error
            )
        return PartialCompletionError(
            self.order_id,
            stage,
            f"{stage} failed for order {self.order_id} after {', '.join(completed)}: {error}",
            cause=error,
            completed=tuple(completed),
        )

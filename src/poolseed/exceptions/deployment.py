from typing import TYPE_CHECKING, Any

from poolseed.exceptions.base import PoolseedError

if TYPE_CHECKING:
    from poolseed.deployment.state import DeploymentStage, DeploymentState


class DeploymentError(PoolseedError):
    """
    Raised by the deployment orchestrator when a stage fails.

    `state` is the last state that was reached and persisted, `stage` is the stage that was being
    attempted, and `cause` is the underlying typed exception (also available as `__cause__`).
    """

    def __init__(
        self,
        stage: "DeploymentStage",
        state: "DeploymentState",
        cause: BaseException,
    ) -> None:
        self.stage = stage
        self.state = state
        self.cause = cause
        super().__init__(
            message=f"Deployment failed while attempting {stage.name} "
            f"(last reached {state.stage.name}): {cause}"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.stage, self.state, self.cause)

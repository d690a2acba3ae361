from .messages import AllowanceChecked, DeploymentStageReached, PendingTransactionResumed, PoolFunded
from .orchestrator import PoolDeploymentOrchestrator
from .parameters import PoolParameters, TokenParameters, load_pool_parameters
from .state import DeploymentKey, DeploymentRecord, DeploymentStage, DeploymentState
from .store import DatabaseStateStore, MemoryStateStore, StateStore, discard_deployment

__all__ = (
    "AllowanceChecked",
    "DatabaseStateStore",
    "DeploymentKey",
    "DeploymentRecord",
    "DeploymentStage",
    "DeploymentStageReached",
    "DeploymentState",
    "MemoryStateStore",
    "PendingTransactionResumed",
    "PoolDeploymentOrchestrator",
    "PoolFunded",
    "PoolParameters",
    "StateStore",
    "TokenParameters",
    "discard_deployment",
    "load_pool_parameters",
)

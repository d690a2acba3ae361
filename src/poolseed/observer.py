import logging

from hexbytes import HexBytes

from poolseed.deployment.messages import (
    AllowanceChecked,
    DeploymentStageReached,
    PendingTransactionResumed,
    PoolFunded,
)
from poolseed.logging import logger
from poolseed.transaction import TransactionBroadcast, TransactionConfirmed
from poolseed.types import AbstractPublisherMessage, Publisher


class LoggingSubscriber:
    """
    Writes messages from the deployment pipeline to a logger.

    Subscribe an instance to the orchestrator and the transaction sender. Publishers hold subscribers
    by weak reference, so keep a reference to the instance while it is in use.
    """

    def __init__(self, target: logging.Logger = logger, level: int = logging.INFO) -> None:
        self.target = target
        self.level = level

    def notify(self, publisher: Publisher, message: AbstractPublisherMessage) -> None:  # noqa: ARG002
        match message:
            case DeploymentStageReached(key=key, state=state):
                text = f"Deployment for treasury {key.treasury} reached {state.stage.name}"
                if state.pool_address is not None and state.pool_id is not None:
                    text += f" (pool {state.pool_address}, ID {HexBytes(state.pool_id).to_0x_hex()})"
            case PendingTransactionResumed(tx_hash=tx_hash):
                text = f"Waiting for transaction {tx_hash} from an earlier attempt"
            case AllowanceChecked(allowance=allowance):
                text = (
                    f"Allowance for {allowance.token}: {allowance.current} "
                    f"(required {allowance.required})"
                )
            case PoolFunded(event=event):
                text = f"Pool funded with {list(event.deltas)} of {list(event.tokens)}"
            case TransactionBroadcast(tx_hash=tx_hash, to=to):
                text = f"Sent transaction {tx_hash} to {to}"
            case TransactionConfirmed(tx_hash=tx_hash, block_number=block_number, status=status):
                text = (
                    f"Transaction {tx_hash} mined in block {block_number} "
                    f"({'success' if status == 1 else 'failed'})"
                )
            case _:
                text = repr(message)

        self.target.log(self.level, text)

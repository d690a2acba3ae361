import asyncio
from collections.abc import Awaitable, Callable, Sequence
from weakref import WeakSet

from eth_typing import ChecksumAddress
from web3.types import TxReceipt

from poolseed.balancer.factory import PoolFactoryClient
from poolseed.balancer.vault import VaultClient
from poolseed.checksum_cache import get_checksum_address
from poolseed.deployment.messages import (
    AllowanceChecked,
    DeploymentStageReached,
    PendingTransactionResumed,
    PoolFunded,
)
from poolseed.deployment.parameters import PoolParameters, TokenParameters
from poolseed.deployment.state import (
    DeploymentKey,
    DeploymentRecord,
    DeploymentStage,
    DeploymentState,
)
from poolseed.deployment.store import StateStore, discard_deployment
from poolseed.erc20.allowance import AllowanceManager
from poolseed.erc20.erc20 import Erc20Token
from poolseed.exceptions import (
    DeploymentError,
    InsufficientBalanceError,
    InvalidTokenOrderError,
    PoolseedValueError,
    PoolTokenMismatch,
    TransactionRevertedError,
)
from poolseed.transaction import TransactionSender, receipt_hash
from poolseed.types import PublisherMixin, Subscriber


class _Attempt:
    """
    The bookkeeping for one `deploy_pool` call: the current state, and how to persist it.
    """

    def __init__(
        self,
        store: StateStore,
        key: DeploymentKey,
        fingerprint: str,
        state: DeploymentState,
    ) -> None:
        self.store = store
        self.key = key
        self.fingerprint = fingerprint
        self.state = state

    def persist(self, state: DeploymentState) -> None:
        self.store.save(
            DeploymentRecord(
                key=self.key,
                parameters_fingerprint=self.fingerprint,
                state=state,
            )
        )
        self.state = state

    async def record_pending(self, tx_hash: str) -> None:
        self.persist(self.state.with_pending(tx_hash))


class PoolDeploymentOrchestrator(PublisherMixin):
    """
    Creates a weighted pool, approves the vault for each pool token, and funds the pool, as a
    forward-only sequence of persisted stages:

    NOT_STARTED -> POOL_CREATED -> ALLOWANCES_READY -> JOINED

    Each stage's result is persisted before the next stage begins. If a stage fails, a
    `DeploymentError` carrying the last persisted state is raised, and the next call to `deploy_pool`
    resumes from that state. Pool creation is never repeated once it has succeeded.

    Every transaction hash is persisted as soon as the transaction is broadcast. If waiting for it is
    interrupted (timeout or cancellation), the next call waits for that same transaction instead of
    sending another.
    """

    def __init__(
        self,
        *,
        chain_id: int,
        sender: TransactionSender,
        factory: PoolFactoryClient,
        vault: VaultClient,
        allowances: AllowanceManager,
        store: StateStore,
        validate_balances: bool = True,
    ) -> None:
        self.chain_id = chain_id
        self.sender = sender
        self.factory = factory
        self.vault = vault
        self.allowances = allowances
        self.store = store
        self.validate_balances = validate_balances

        self._in_flight: set[DeploymentKey] = set()
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def key_for(self, treasury: str | None = None) -> DeploymentKey:
        return DeploymentKey(
            chain_id=self.chain_id,
            treasury=get_checksum_address(treasury) if treasury is not None else self.sender.address,
        )

    def get_state(self, treasury: str | None = None) -> DeploymentState:
        record = self.store.load(self.key_for(treasury))
        return record.state if record is not None else DeploymentState()

    def discard(self, treasury: str | None = None, *, force: bool = False) -> bool:
        """
        Remove the stored deployment record for the treasury, once `JOINED` has been reported.
        """

        return discard_deployment(self.store, self.key_for(treasury), force=force)

    async def deploy_pool(
        self,
        parameters: PoolParameters,
        treasury: str | None = None,
    ) -> DeploymentState:
        """
        Run or resume the deployment of `parameters` for `treasury` (the sending account if
        omitted), and return the final `JOINED` state.

        Raises `DeploymentError` with the last reached state if a stage fails.
        """

        key = self.key_for(treasury)
        if key.treasury != self.sender.address:
            # The vault only pulls tokens from the account that sends the join
            raise PoolseedValueError(
                message=f"Treasury {key.treasury} does not match the sending account "
                f"{self.sender.address}."
            )
        if key in self._in_flight:
            raise PoolseedValueError(
                message=f"A deployment for treasury {key.treasury} is already in progress."
            )

        self._in_flight.add(key)
        try:
            try:
                tokens = parameters.ordered_tokens()
            except InvalidTokenOrderError as exc:
                # Rejected before anything is persisted or sent
                raise DeploymentError(
                    stage=DeploymentStage.POOL_CREATED,
                    state=self.get_state(key.treasury),
                    cause=exc,
                ) from exc
            attempt = self._start_attempt(key, parameters)

            while attempt.state.stage is not DeploymentStage.JOINED:
                stage = attempt.state.stage.next
                try:
                    match stage:
                        case DeploymentStage.POOL_CREATED:
                            await self._create_pool(attempt, parameters, tokens)
                        case DeploymentStage.ALLOWANCES_READY:
                            await self._ensure_allowances(attempt, tokens)
                        case DeploymentStage.JOINED:
                            await self._join(attempt, parameters, tokens)
                except Exception as exc:
                    raise DeploymentError(stage=stage, state=attempt.state, cause=exc) from exc

                self._notify_subscribers(DeploymentStageReached(key=key, state=attempt.state))

            return attempt.state
        finally:
            self._in_flight.discard(key)

    def _start_attempt(self, key: DeploymentKey, parameters: PoolParameters) -> _Attempt:
        fingerprint = parameters.fingerprint()
        record = self.store.load(key)

        if record is None:
            attempt = _Attempt(self.store, key, fingerprint, DeploymentState())
            attempt.persist(attempt.state)
            return attempt

        if record.parameters_fingerprint != fingerprint:
            raise PoolseedValueError(
                message=f"A deployment with different parameters exists for treasury "
                f"{key.treasury} (stage {record.state.stage.name}). Finish or discard it first."
            )
        return _Attempt(self.store, key, fingerprint, record.state)

    async def _resume_pending(self, attempt: _Attempt) -> TxReceipt | None:
        """
        Wait for a transaction broadcast by an earlier attempt. A reverted transaction is cleared so
        the stage can be retried.
        """

        tx_hash = attempt.state.pending_transaction
        if tx_hash is None:
            return None

        self._notify_subscribers(PendingTransactionResumed(key=attempt.key, tx_hash=tx_hash))
        try:
            return await self.sender.wait_for_receipt(tx_hash)
        except TransactionRevertedError:
            attempt.persist(attempt.state.with_pending(None))
            raise

    async def _send_tracked[T](
        self,
        attempt: _Attempt,
        send: Callable[[Callable[[str], Awaitable[None]]], Awaitable[T]],
    ) -> T:
        """
        Run `send` with a callback that persists the transaction hash on broadcast. A confirmed
        revert clears the pending hash, since the stage can then be attempted again.
        """

        try:
            return await send(attempt.record_pending)
        except TransactionRevertedError:
            if attempt.state.pending_transaction is not None:
                attempt.persist(attempt.state.with_pending(None))
            raise

    async def _create_pool(
        self,
        attempt: _Attempt,
        parameters: PoolParameters,
        tokens: Sequence[TokenParameters],
    ) -> None:
        # A missing PoolCreated event raises EventNotFoundError and leaves the creation transaction
        # pending, so later attempts report the same error instead of creating a second pool.
        receipt = await self._resume_pending(attempt)
        if receipt is not None:
            pool_address = self.factory.pool_address_from_receipt(receipt)
        else:
            pool_address = await self._send_tracked(
                attempt,
                lambda on_broadcast: self.factory.create_weighted_pool(
                    name=parameters.name,
                    symbol=parameters.symbol,
                    tokens=[token.address for token in tokens],
                    weights=[token.weight for token in tokens],
                    swap_fee_bps=parameters.swap_fee_bps,
                    owner=parameters.owner,
                    on_broadcast=on_broadcast,
                ),
            )

        pool = await self.vault.get_pool(pool_address)

        expected = tuple(token.address for token in tokens)
        if pool.tokens != expected:
            raise PoolTokenMismatch(expected=expected, registered=pool.tokens)

        attempt.persist(attempt.state.pool_created(pool_address=pool.address, pool_id=pool.pool_id))

    async def _ensure_allowances(
        self,
        attempt: _Attempt,
        tokens: Sequence[TokenParameters],
    ) -> None:
        await self._resume_pending(attempt)
        if attempt.state.pending_transaction is not None:
            attempt.persist(attempt.state.with_pending(None))

        checks = await asyncio.gather(
            *(
                self.allowances.check_allowance(
                    token=token.address,
                    owner=attempt.key.treasury,
                    spender=self.vault.address,
                    required=token.amount.value,
                )
                for token in tokens
            )
        )

        for allowance in checks:
            self._notify_subscribers(AllowanceChecked(allowance=allowance))
            if not allowance.needs_approval:
                continue
            await self._send_tracked(
                attempt,
                lambda on_broadcast, allowance=allowance: self.allowances.approve(
                    allowance,
                    on_broadcast=on_broadcast,
                ),
            )
            attempt.persist(attempt.state.with_pending(None))

        attempt.persist(attempt.state.allowances_ready())

    async def _check_balances(
        self,
        treasury: ChecksumAddress,
        tokens: Sequence[TokenParameters],
    ) -> None:
        balances = await asyncio.gather(
            *(
                Erc20Token(
                    token.address,
                    self.sender.w3,
                    max_read_retries=self.allowances.max_read_retries,
                ).get_balance(treasury)
                for token in tokens
            )
        )
        for token, balance in zip(tokens, balances, strict=True):
            if balance < token.amount.value:
                raise InsufficientBalanceError(
                    token=token.address,
                    balance=balance,
                    required=token.amount.value,
                )

    async def _join(
        self,
        attempt: _Attempt,
        parameters: PoolParameters,
        tokens: Sequence[TokenParameters],
    ) -> None:
        assert attempt.state.pool_id is not None

        receipt = await self._resume_pending(attempt)
        if receipt is None:
            if self.validate_balances and not parameters.from_internal_balance:
                await self._check_balances(attempt.key.treasury, tokens)

            amounts = [token.amount for token in tokens]
            pool_id = attempt.state.pool_id
            receipt = await self._send_tracked(
                attempt,
                lambda on_broadcast: self.vault.join(
                    pool_id=pool_id,
                    treasury=attempt.key.treasury,
                    assets=[token.address for token in tokens],
                    max_amounts_in=amounts,
                    initial_balances=amounts,
                    from_internal_balance=parameters.from_internal_balance,
                    on_broadcast=on_broadcast,
                ),
            )

        for event in self.vault.balance_changes_from_receipt(receipt):
            self._notify_subscribers(PoolFunded(event=event))

        attempt.persist(
            attempt.state.joined(
                tx_hash=receipt_hash(receipt),
                block_number=receipt["blockNumber"],
            )
        )

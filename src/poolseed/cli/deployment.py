import asyncio
from pathlib import Path

import click
from hexbytes import HexBytes
from pydantic import ValidationError

from poolseed.checksum_cache import get_checksum_address
from poolseed.cli import cli
from poolseed.cli.utils import (
    PRIVATE_KEY_ENV_VAR,
    build_orchestrator,
    get_async_web3_from_config,
    get_local_account,
    get_state_store,
)
from poolseed.deployment.parameters import load_pool_parameters
from poolseed.deployment.state import DeploymentKey, DeploymentState
from poolseed.deployment.store import discard_deployment
from poolseed.exceptions import DeploymentError, PoolseedError
from poolseed.observer import LoggingSubscriber


def _format_state(state: DeploymentState) -> str:
    lines = [f"Stage: {state.stage.name}"]
    if state.pool_address is not None:
        lines.append(f"Pool address: {state.pool_address}")
    if state.pool_id is not None:
        lines.append(f"Pool ID: {HexBytes(state.pool_id).to_0x_hex()}")
    if state.pending_transaction is not None:
        lines.append(f"Pending transaction: {state.pending_transaction}")
    if state.join_tx_hash is not None:
        lines.append(f"Join transaction: {state.join_tx_hash} (block {state.join_block_number})")
    return "\n".join(lines)


@cli.command("deploy")
@click.argument(
    "pool_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--chain-id",
    "chain_id",
    type=int,
    required=True,
    help="The chain to deploy on. An RPC for it must be defined in the config file.",
)
@click.option(
    "--from",
    "from_address",
    default=None,
    help=(
        "Send transactions from this provider-managed account with eth_sendTransaction. Only used "
        f"if {PRIVATE_KEY_ENV_VAR} is not set."
    ),
)
@click.option(
    "--key-env",
    "key_env",
    default=PRIVATE_KEY_ENV_VAR,
    show_default=True,
    help="The environment variable holding the treasury's private key.",
)
def deploy(
    *,
    pool_file: Path,
    chain_id: int,
    from_address: str | None,
    key_env: str,
) -> None:
    """
    Create, approve, and fund the weighted pool defined in POOL_FILE, or resume an earlier attempt.
    """

    try:
        parameters = load_pool_parameters(pool_file)
    except ValidationError as exc:
        raise click.BadParameter(str(exc), param_hint="POOL_FILE") from None

    account = get_local_account(key_env)
    if account is None and from_address is None:
        msg = f"Set {key_env} or provide a provider-managed account with --from."
        raise click.UsageError(msg)

    async def _deploy() -> DeploymentState:
        w3 = await get_async_web3_from_config(chain_id=chain_id)
        orchestrator = build_orchestrator(
            w3=w3,
            chain_id=chain_id,
            account=account,
            address=from_address,
        )
        subscriber = LoggingSubscriber()
        orchestrator.subscribe(subscriber)
        orchestrator.sender.subscribe(subscriber)
        return await orchestrator.deploy_pool(parameters)

    try:
        state = asyncio.run(_deploy())
    except DeploymentError as exc:
        click.echo(_format_state(exc.state))
        msg = f"{exc.stage.name} failed: {exc.cause}. Run the command again to resume."
        raise click.ClickException(msg) from None
    except (PoolseedError, ValueError) as exc:
        raise click.ClickException(str(exc)) from None

    click.echo(_format_state(state))


@cli.command("status")
@click.option("--chain-id", "chain_id", type=int, required=True)
@click.option("--treasury", "treasury", required=True, help="The treasury account address.")
def status(*, chain_id: int, treasury: str) -> None:
    """
    Show the stored progress of the deployment for a treasury.
    """

    key = DeploymentKey(chain_id=chain_id, treasury=get_checksum_address(treasury))
    record = get_state_store().load(key)
    if record is None:
        click.echo(f"No deployment is stored for {key.treasury} on chain {chain_id}.")
        return
    click.echo(_format_state(record.state))


@cli.command("discard")
@click.option("--chain-id", "chain_id", type=int, required=True)
@click.option("--treasury", "treasury", required=True, help="The treasury account address.")
@click.option(
    "--force",
    is_flag=True,
    help="Discard a deployment that has not been joined. Resolve it by hand first.",
)
def discard(*, chain_id: int, treasury: str, force: bool) -> None:
    """
    Remove the stored deployment record for a treasury.
    """

    key = DeploymentKey(chain_id=chain_id, treasury=get_checksum_address(treasury))
    try:
        removed = discard_deployment(get_state_store(), key, force=force)
    except PoolseedError as exc:
        raise click.ClickException(str(exc)) from None

    if removed:
        click.echo(f"Discarded the deployment for {key.treasury} on chain {chain_id}.")
    else:
        click.echo(f"No deployment is stored for {key.treasury} on chain {chain_id}.")

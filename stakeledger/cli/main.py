"""
Stake Ledger CLI - Command Line Interface for the staking ledger

Main entry point for all CLI commands. State is persisted in a SQLite
database under --data-dir; time is wall-clock time.
"""

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Tuple

import click

from stakeledger import __version__
from stakeledger.core.config import load_config
from stakeledger.core.errors import StakingError
from stakeledger.core.staking import StakingLedger
from stakeledger.core.storage import StorageManager
from stakeledger.core.token import UNIT, TokenLedger, create_bep20
from stakeledger.utils.logger import get_logger, setup_logging

logger = get_logger("cli")


def to_units(value: str) -> int:
    """Convert a token amount like '500' or '0.25' to base units."""
    try:
        units = Decimal(value) * UNIT
    except InvalidOperation:
        raise click.BadParameter(f"Not a number: {value}")
    if not units.is_finite():
        raise click.BadParameter(f"Not a finite amount: {value}")
    if units < 0:
        raise click.BadParameter(f"Amount must not be negative: {value}")
    if units != units.to_integral_value():
        raise click.BadParameter(f"Too many decimals: {value}")
    return int(units)


def fmt(units: int) -> str:
    """Format base units as whole tokens."""
    whole, frac = divmod(units, UNIT)
    if frac == 0:
        return f"{whole:,}"
    return f"{whole:,}." + f"{frac:018d}".rstrip("0")


def open_deployment(ctx) -> Tuple[StorageManager, TokenLedger, StakingLedger]:
    """Load the persisted token and staking ledger."""
    storage = StorageManager(ctx.obj["data_dir"])
    if not storage.is_initialized():
        click.echo("❌ No ledger in this data directory")
        click.echo("   Create one with: stakeledger init --owner <account>")
        ctx.exit(1)

    cap = storage.get_meta("staking_cap")
    config = replace(
        ctx.obj["config"],
        ledger_address=storage.get_meta("ledger_address"),
        withdraw_delay=int(storage.get_meta("withdraw_delay")),
        staking_cap=int(cap) if cap else None,
    )

    token = TokenLedger(
        name=storage.get_meta("token_name"),
        symbol=storage.get_meta("token_symbol"),
        storage_manager=storage,
    )
    ledger = StakingLedger(
        token,
        owner=storage.get_meta("owner"),
        config=config,
        storage_manager=storage,
    )
    return storage, token, ledger


def run_or_fail(ctx, action, *args):
    """Run a ledger operation, turning StakingError into a failed exit."""
    try:
        return action(*args)
    except StakingError as e:
        click.echo(f"❌ {type(e).__name__}: {e}")
        ctx.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.stakeledger", help="Data directory")
@click.option("--config", "config_path", default=None, help="JSON config file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """Stake Ledger - token staking with delayed withdrawals and rewards"""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=str(ctx.obj["data_dir"] / "logs"))

    ctx.obj["config"] = load_config(config_path)


# =============================================================================
# Deployment
# =============================================================================


@cli.command("init")
@click.option("--owner", required=True, help="Owner account (receives the token supply)")
@click.option("--supply", default="500000000", help="Token supply in whole tokens")
@click.option("--symbol", default="TKN", help="Token symbol")
@click.option("--name", "token_name", default="BEP20 Token", help="Token name")
@click.option("--cap", default=None, help="Staking cap in whole tokens")
@click.option("--withdraw-delay", default=None, type=int, help="Withdrawal cool-down in seconds")
@click.pass_context
def init(ctx, owner, supply, symbol, token_name, cap, withdraw_delay):
    """Deploy a token and a staking ledger"""
    storage = StorageManager(ctx.obj["data_dir"])
    if storage.is_initialized():
        click.echo(f"❌ Ledger already initialized in {ctx.obj['data_dir']}")
        ctx.exit(1)

    overrides = {}
    if withdraw_delay is not None:
        overrides["withdraw_delay"] = withdraw_delay
    if cap is not None:
        overrides["staking_cap"] = to_units(cap)
    try:
        config = replace(ctx.obj["config"], **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e))

    with storage.transaction():
        token = create_bep20(owner, to_units(supply), name=token_name, symbol=symbol, storage_manager=storage)
        storage.save_meta({
            "ledger_address": config.ledger_address,
            "owner": owner,
            "token_name": token_name,
            "token_symbol": symbol,
            "withdraw_delay": str(config.withdraw_delay),
            "staking_cap": str(config.staking_cap) if config.staking_cap else "",
        })

    click.echo(f"✓ Token {symbol} deployed, supply {fmt(token.total_supply())} to {owner}")
    click.echo(f"✓ Staking ledger {config.ledger_address} deployed")
    click.echo(f"  Withdraw delay: {config.withdraw_delay}s")
    if config.staking_cap:
        click.echo(f"  Staking cap: {fmt(config.staking_cap)}")


@cli.command("transfer")
@click.argument("sender")
@click.argument("to")
@click.argument("amount")
@click.pass_context
def transfer(ctx, sender, to, amount):
    """Transfer tokens between accounts"""
    _, token, _ = open_deployment(ctx)
    run_or_fail(ctx, token.transfer, sender, to, to_units(amount))
    click.echo(f"✓ {sender} -> {to}: {amount} {token.symbol}")


# =============================================================================
# Owner Commands
# =============================================================================


@cli.command("set-duration")
@click.argument("caller")
@click.argument("seconds", type=int)
@click.pass_context
def set_duration(ctx, caller, seconds):
    """Open a reward period (owner only)"""
    _, _, ledger = open_deployment(ctx)
    schedule = run_or_fail(ctx, ledger.set_rewards_duration, caller, seconds)
    click.echo(f"✓ Reward period open until {schedule.period_end}")


@cli.command("fund")
@click.argument("caller")
@click.argument("amount")
@click.pass_context
def fund(ctx, caller, amount):
    """Fund the reward pool of the current period (owner only)"""
    _, _, ledger = open_deployment(ctx)
    rate = run_or_fail(ctx, ledger.notify_reward_amount, caller, to_units(amount))
    click.echo(f"✓ Reward pool funded with {amount}, rate {fmt(rate)}/s")


# =============================================================================
# Account Commands
# =============================================================================


@cli.command("stake")
@click.argument("account")
@click.argument("amount")
@click.pass_context
def stake(ctx, account, amount):
    """Stake tokens"""
    _, token, ledger = open_deployment(ctx)
    position = run_or_fail(ctx, ledger.stake, account, to_units(amount))
    click.echo(f"✓ {account} staked {amount}, position {fmt(position.staked)} {token.symbol}")


@cli.command("request-withdraw")
@click.argument("account")
@click.pass_context
def request_withdraw(ctx, account):
    """Start the withdrawal cool-down"""
    _, _, ledger = open_deployment(ctx)
    ready_at = run_or_fail(ctx, ledger.request_withdraw, account)
    click.echo(f"✓ Withdrawal requested, available in {ledger.withdraw_pending(account)}s (at {ready_at})")


@cli.command("withdraw")
@click.argument("account")
@click.pass_context
def withdraw(ctx, account):
    """Withdraw the full stake after the cool-down"""
    _, token, ledger = open_deployment(ctx)
    amount = run_or_fail(ctx, ledger.withdraw, account)
    click.echo(f"✓ {account} withdrew {fmt(amount)} {token.symbol}")


@cli.command("claim")
@click.argument("account")
@click.pass_context
def claim(ctx, account):
    """Claim reward and principal after the reward period"""
    _, token, ledger = open_deployment(ctx)
    receipt = run_or_fail(ctx, ledger.claim_reward, account)
    click.echo(f"✓ {account} claimed reward {fmt(receipt.reward)} + principal {fmt(receipt.principal)} {token.symbol}")


@cli.command("status")
@click.argument("account", required=False)
@click.pass_context
def status(ctx, account):
    """Show ledger statistics, or one account's position"""
    _, token, ledger = open_deployment(ctx)

    if account:
        position = ledger.get_position(account)
        click.echo(f"Account {account}")
        click.echo("-" * 40)
        click.echo(f"  Token balance: {fmt(token.balance_of(account))} {token.symbol}")
        click.echo(f"  Staked: {fmt(position.staked)}")
        click.echo(f"  State: {position.state.name}")
        click.echo(f"  Earned: {fmt(ledger.earned(account))}")
        click.echo(f"  Reward claimed: {position.reward_claimed}")
        click.echo(f"  Withdraw pending: {ledger.withdraw_pending(account)}s")
        return

    click.echo("Stake Ledger Statistics")
    click.echo("-" * 40)
    for key, value in ledger.stats().items():
        click.echo(f"  {key}: {value}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option(
    "--scenario",
    type=click.Choice(["claim", "withdraw"]),
    default="claim",
    help="Demo scenario to run",
)
def demo(scenario):
    """Replay a staking cycle in memory with a simulated clock"""
    from stakeledger.core.clock import ManualClock
    from stakeledger.core.config import StakingConfig

    click.echo("=" * 60)
    click.echo("  STAKE LEDGER - DEMO")
    click.echo("=" * 60)
    click.echo()

    clock = ManualClock()
    token = create_bep20("owner")
    ledger = StakingLedger(
        token,
        owner="owner",
        config=StakingConfig(staking_cap=5000 * UNIT),
        clock=clock,
    )
    click.echo(f"📦 Token supply: {fmt(token.total_supply())} {token.symbol}")

    token.transfer("owner", "alice", (5000 if scenario == "claim" else 2000) * UNIT)
    click.echo(f"  ✓ Alice balance: {fmt(token.balance_of('alice'))}")

    ledger.set_rewards_duration("owner", 300)
    click.echo("⏱️  Reward period opened for 300s")

    if scenario == "claim":
        ledger.notify_reward_amount("owner", 2000 * UNIT)
        click.echo("  ✓ Reward pool funded with 2,000")

    ledger.stake("alice", 500 * UNIT)
    click.echo(f"🔒 Alice staked 500, balance {fmt(token.balance_of('alice'))}, total staked {fmt(ledger.total_supply())}")

    if scenario == "claim":
        clock.advance(172_800)
        receipt = ledger.claim_reward("alice")
        click.echo(f"🎁 Alice claimed reward {fmt(receipt.reward)} + principal {fmt(receipt.principal)}")
    else:
        ledger.request_withdraw("alice")
        click.echo(f"⏳ Withdrawal requested, pending {ledger.withdraw_pending('alice')}s")
        clock.advance(ledger.withdraw_pending("alice"))
        amount = ledger.withdraw("alice")
        click.echo(f"💸 Alice withdrew {fmt(amount)}")

    click.echo()
    click.echo("📊 Final state:")
    click.echo(f"  Alice balance: {fmt(token.balance_of('alice'))}")
    click.echo(f"  Total staked: {fmt(ledger.total_supply())}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()

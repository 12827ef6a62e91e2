"""
Escrow Auction CLI - Command Line Interface

Main entry point for all CLI commands.
"""

import click

from escrow_auction.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load AUCTION_* settings from a .env file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file):
    """Escrowed ascending auction - operator tooling"""
    import logging

    level = logging.DEBUG if debug else logging.WARNING
    setup_logging(level=level)

    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective auction configuration"""
    from escrow_auction.core.config import load_config

    try:
        config = load_config(ctx.obj["env_file"])
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo("Auction Configuration")
    click.echo("-" * 40)
    for name, value in config.to_dict().items():
        click.echo(f"  {name}: {value}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--fail-refund-to", default=None, help="Bidder whose refund transfer should fail")
@click.pass_context
def demo(ctx, fail_refund_to):
    """Replay a two-bidder auction from start to commission payout"""
    from escrow_auction.core.auction import AuctionController
    from escrow_auction.core.clock import ManualClock
    from escrow_auction.core.config import load_config
    from escrow_auction.core.errors import AuctionError
    from escrow_auction.core.transfer import InMemoryGateway

    try:
        config = load_config(ctx.obj["env_file"])
    except ValueError as e:
        raise click.ClickException(str(e))

    logger.debug(f"Demo config: {config.to_dict()}")
    operator, alice, bob = "operator", "alice", "bob"
    clock = ManualClock(start=1_700_000_000)
    gateway = InMemoryGateway()
    auction = AuctionController(operator, gateway, config=config, clock=clock, strict=True)

    click.echo("=" * 60)
    click.echo("  ESCROW AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    try:
        auction.start(operator)
        state = auction.get_state()
        click.echo(f"🏁 Auction started, ends at {state.end_time}")
        click.echo(f"  ✓ Minimum first bid: {state.next_minimum_bid}")
        click.echo()

        first = auction.get_next_minimum_bid() * (100 + config.min_increment_pct) // 100
        auction.place_bid(alice, first, first)
        click.echo(f"💸 alice bids {first} (deposit {first})")

        second = auction.get_next_minimum_bid()
        deposit = second + second // 10
        auction.place_bid(bob, second, deposit)
        click.echo(f"💸 bob bids {second} (deposit {deposit})")
        click.echo()

        clock.advance(config.duration + config.extension + 1)
        winner, amount = auction.get_winner()
        click.echo(f"⏰ Bidding closed: winner={winner}, amount={amount}")

        auction.finalize(operator)
        click.echo("  ✓ Auction finalized")

        paid = auction.withdraw_winning_bid(operator)
        click.echo(f"  ✓ Winning bid withdrawn: {paid}")
        click.echo()

        if fail_refund_to:
            gateway.fail_for(fail_refund_to)

        report = auction.distribute_remaining_funds(operator)
        click.echo("⚖️  Distributing remaining funds...")
        for refund in report.refunds:
            click.echo(f"  ✓ {refund.identity}: {refund.payout} (commission {refund.commission})")
        for identity in report.failed:
            click.echo(f"  ❌ {identity}: transfer failed, balance kept for retry")
        click.echo()

        commission = auction.withdraw_commission_pool(operator)
        click.echo(f"🏦 Commission withdrawn: {commission}")
    except AuctionError as e:
        logger.error(f"Demo aborted in phase {auction.phase.name}: {e!r}")
        raise click.ClickException(f"{type(e).__name__}: {e}")

    click.echo()
    click.echo("📊 Final Statistics:")
    for key, value in auction.ledger.stats().items():
        click.echo(f"  {key}: {value}")
    click.echo(f"  events: {len(auction.events)}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()

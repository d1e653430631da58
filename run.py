"""Command line entry point for the governance dashboard data layer."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from connectors.hive_engine import HiveEngineClient, positive_total_stake
from connectors.transport import RetryingTransport
from core.config_loader import load_config
from core.config_models import AppConfig
from core.errors import FetchError
from governance.reserve_ratio import fetch_reserve_report
from governance.stake_distribution import fetch_stake_distribution
from governance.voting import fetch_vote_result

LOGGER = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Association stake and reserve dashboard")
    command = parser.add_mutually_exclusive_group(required=True)
    command.add_argument("--stakes", action="store_true", help="Show member stake distribution")
    command.add_argument("--reserve", action="store_true", help="Show the reserve ratio")
    command.add_argument("--token", action="store_true", help="Show token supply")
    command.add_argument("--account", metavar="NAME", help="Show one account's balance")
    command.add_argument("--vote", nargs="+", metavar="NAME", help="Weighted approval of the members voting in favour")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def show_stakes(client: HiveEngineClient, config: AppConfig) -> None:
    members = config.governance.members
    if not members:
        raise SystemExit("No members configured (governance.members)")
    distribution = await fetch_stake_distribution(client, members, validate=positive_total_stake)
    for share in distribution.shares:
        print(f"{share.account:<20} {share.stake:>14.3f} {share.percentage:>7.2f}%")
    print(f"{'total':<20} {distribution.total_stake:>14.3f}")


async def show_vote(client: HiveEngineClient, config: AppConfig, selected: Sequence[str]) -> None:
    governance = config.governance
    if not governance.members:
        raise SystemExit("No members configured (governance.members)")
    result = await fetch_vote_result(
        client, governance.members, selected, governance.k, validate=positive_total_stake
    )
    if result is None:
        print("No weighted result (nothing staked)")
        return
    print(f"Vote result (k={governance.k})")
    print(f"Total staked OCLT (members): {result.total_staked:.3f}")
    print(f"Total possible weight:       {result.total_possible_weighted:.3f}")
    print(f"Weight in favour:            {result.weighted_in_favor:.3f}")
    print(f"Approval:                    {result.approval_pct:.2f}%")


async def show_reserve(client: HiveEngineClient, transport: RetryingTransport, config: AppConfig) -> None:
    report = await fetch_reserve_report(client, transport, config)
    governance = config.governance
    print(f"Reserves (OCLT equiv.):   {report.reserves_oclt:.3f}")
    print(f"Public circulation:       {report.public_circulation:.3f}")
    print(f"Reserve ratio:            {report.ratio_pct:.2f}%")
    print(f"Status:                   {report.status.value.upper()}")
    print(
        f"Limits: soft {governance.soft_limit}%, medium {governance.medium_limit}%, "
        f"hard {governance.hard_limit}%"
    )


async def show_token(client: HiveEngineClient) -> None:
    info = await client.fetch_token_info()
    print(f"Total supply:       {info.total_supply}")
    print(f"Circulating supply: {info.circulating_supply}")


async def show_account(client: HiveEngineClient, account: str) -> None:
    record = await client.fetch_single_balance(account)
    print(f"{record.account}: balance {record.balance}, stake {record.stake}")
    if record.pending_unstake is not None:
        print(f"pending unstake {record.pending_unstake}")


async def run_command(args: argparse.Namespace, config: AppConfig) -> None:
    transport = RetryingTransport(config.transport)
    async with HiveEngineClient.from_config(config, transport=transport) as client:
        LOGGER.debug("Endpoints: %s", client.registry.snapshot())
        if args.stakes:
            await show_stakes(client, config)
        elif args.reserve:
            await show_reserve(client, transport, config)
        elif args.vote:
            await show_vote(client, config, args.vote)
        elif args.token:
            await show_token(client)
        else:
            await show_account(client, args.account)


def run_async(entry: Callable[[], Awaitable[None]]) -> int:
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
    except FetchError as exc:
        LOGGER.error("Fetch failed: %s", exc)
        print(f"Error loading data: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config = load_config(config_path=args.config)
    return run_async(lambda: run_command(args, config))


if __name__ == "__main__":
    sys.exit(main())

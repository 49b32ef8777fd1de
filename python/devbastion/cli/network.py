#!/usr/bin/env python3
"""
devbastion/cli/network.py

Shows how instance addresses are handed out in a subnet:

    python -m devbastion.cli.network allocate --prefix 172.16.2.0/24 --count 3
"""

from __future__ import annotations

import argparse
import sys

from devbastion.cli.common import add_logging_cli_args, configure_logging
from devbastion.deployment.provision import allocate_workload_addresses
from devbastion.errors import AddressRangeExhausted
from devbastion.models.network import NetworkPlan
from devbastion.utils.address import first_allocatable, parse_prefix


def run_allocate(args: argparse.Namespace) -> None:
    prefix = args.prefix or NetworkPlan().workload
    print(f"first allocatable: {first_allocatable(parse_prefix(prefix))}")
    for index, address in enumerate(allocate_workload_addresses(prefix, args.count)):
        print(f"workload.addr.{index}: {address}")


def run_plan(args: argparse.Namespace) -> None:
    plan = NetworkPlan(vpc=args.vpc, dmz=args.dmz, workload=args.workload)
    for name, cidr in plan.as_dict().items():
        print(f"{name}: {cidr}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="devbastion.cli.network",
        description="Inspect network plans and address allocation.",
    )
    add_logging_cli_args(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    allocate_parser = subparsers.add_parser(
        "allocate", help="Print the addresses N workload instances would get."
    )
    allocate_parser.add_argument(
        "--prefix", help="Subnet CIDR (default: the plan's workload subnet)."
    )
    allocate_parser.add_argument("--count", type=int, default=1)
    allocate_parser.set_defaults(func=run_allocate)

    defaults = NetworkPlan()
    plan_parser = subparsers.add_parser(
        "plan", help="Validate and print a VPC/DMZ/workload layout."
    )
    plan_parser.add_argument("--vpc", default=defaults.vpc)
    plan_parser.add_argument("--dmz", default=defaults.dmz)
    plan_parser.add_argument("--workload", default=defaults.workload)
    plan_parser.set_defaults(func=run_plan)

    args = parser.parse_args()
    configure_logging(args)
    try:
        args.func(args)
    except (AddressRangeExhausted, ValueError) as exc:
        print(f"Network CLI error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

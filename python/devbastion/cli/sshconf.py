#!/usr/bin/env python3
"""
devbastion/cli/sshconf.py

Writes the bastion-proxied SSH client config for hosts that already exist:

    python -m devbastion.cli.sshconf write \
        --bastion 54.1.2.3 --workload 172.16.2.6 --workload 172.16.2.7

or allocates the workload addresses from the plan's workload subnet:

    python -m devbastion.cli.sshconf plan --bastion 54.1.2.3 --count 2

Afterwards `ssh -F ./ssh-config 172.16.2.6` reaches the workload host through
the bastion.
"""

from __future__ import annotations

import argparse
import sys

from devbastion.cli.common import add_logging_cli_args, configure_logging
from devbastion.deployment.provision import (
    ProvisionContext,
    plan_access,
    write_access_config,
)
from devbastion.errors import DevBastionError
from devbastion.models.settings import ProvisionSettings


def _context(args: argparse.Namespace) -> ProvisionContext:
    overrides = {
        key: value
        for key, value in (
            ("ssh_config_path", args.config),
            ("key_path", args.identity),
            ("ssh_user", args.user),
        )
        if value is not None
    }
    return ProvisionContext.from_settings(ProvisionSettings(**overrides))


def run_write(args: argparse.Namespace) -> None:
    context = _context(args)
    builder = write_access_config(context, args.bastion, args.workload or [])
    print(f"Wrote {builder.config_path}")


def run_plan(args: argparse.Namespace) -> None:
    plan = plan_access(_context(args), args.bastion, args.count)
    for index, address in enumerate(plan.workload_addresses):
        print(f"workload.addr.{index}: {address}")
    print(f"Wrote {plan.ssh_config_path}")


def _add_common_args(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument("--config", help="SSH config path (default: settings).")
    subparser.add_argument("--identity", help="Private key path (default: settings).")
    subparser.add_argument("--user", help="Remote login user (default: settings).")
    subparser.add_argument(
        "--bastion", required=True, help="Public address of the bastion host."
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="devbastion.cli.sshconf",
        description="Write an SSH client config that proxies through a bastion.",
    )
    add_logging_cli_args(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    write_parser = subparsers.add_parser("write", help="Write config for known hosts.")
    _add_common_args(write_parser)
    write_parser.add_argument(
        "--workload",
        action="append",
        help="Workload host address (repeatable).",
    )
    write_parser.set_defaults(func=run_write)

    plan_parser = subparsers.add_parser(
        "plan", help="Allocate workload addresses and write config for them."
    )
    _add_common_args(plan_parser)
    plan_parser.add_argument("--count", type=int, default=1)
    plan_parser.set_defaults(func=run_plan)

    args = parser.parse_args()
    configure_logging(args)
    try:
        args.func(args)
    except (DevBastionError, ValueError) as exc:
        print(f"SSH config CLI error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

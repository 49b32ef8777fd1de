#!/usr/bin/env python3
"""
devbastion/cli/keys.py

CLI for the provisioning SSH key:

    python -m devbastion.cli.keys public --path ./ssh-key --provider gcp
    python -m devbastion.cli.keys shared --vault-token ...
    python -m devbastion.cli.keys store-shared --path ./ssh-key --vault-token ...

`public` loads (or generates) the local key and prints its public half.
`shared` prints the public half of the team key in Vault; when it is missing,
the commands that store a freshly generated pair are printed and the command
fails.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import sys

from devbastion.cli.common import (
    add_logging_cli_args,
    add_vault_cli_args,
    build_vault_settings,
    configure_logging,
)
from devbastion.errors import DevBastionError, MissingSharedSecret
from devbastion.models.providers import KEY_BITS_MAP, SSH_USER_MAP, ProviderName
from devbastion.models.settings import ProvisionSettings
from devbastion.models.ssh import SharedKeyNames
from devbastion.secrets.ssh_keys import fetch_shared_keypair, store_shared_keypair
from devbastion.secrets.vault_client import AsyncVaultClient
from devbastion.utils.keys import load_or_create_public_key
from devbastion.utils.naming import gcp_ssh_keys_entry


def _render(public_b64: str, fmt: str, user: str) -> str:
    if fmt == "base64":
        return public_b64
    if fmt == "gcp":
        return gcp_ssh_keys_entry(user, public_b64)
    return f"ssh-rsa {public_b64}"


def run_public(args: argparse.Namespace) -> None:
    settings = ProvisionSettings()
    path = args.path or settings.key_path
    if args.provider:
        provider = ProviderName(args.provider)
        bits = KEY_BITS_MAP[provider]
        user = args.user or SSH_USER_MAP[provider]
    else:
        bits = args.bits or settings.key_bits
        user = args.user or settings.ssh_user

    public_key = load_or_create_public_key(path, bits)
    print(_render(public_key.to_base64(), args.format, user))


async def run_shared(args: argparse.Namespace) -> None:
    vault_settings = build_vault_settings(args)
    async with AsyncVaultClient(vault_settings) as vault:
        pair = await fetch_shared_keypair(
            vault, SharedKeyNames(), kv_mount=vault_settings.kv_mount
        )
    print(_render(pair.public_key, args.format, args.user or "ubuntu"))


async def run_store_shared(args: argparse.Namespace) -> None:
    with open(args.path, "rb") as fh:
        private_pem = fh.read()

    async with AsyncVaultClient(build_vault_settings(args)) as vault:
        pair = await store_shared_keypair(vault, private_pem, SharedKeyNames())
    print(f"Stored shared keypair (public key ssh-rsa {pair.public_key[:24]}...)")


def _add_format_arg(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--format",
        choices=["authorized", "base64", "gcp"],
        default="authorized",
        help="authorized_keys line, bare base64 blob, or GCP ssh-keys metadata entry.",
    )
    subparser.add_argument("--user", help="Login user for the gcp format.")


def main() -> None:
    """
    CLI entry point for local and shared provisioning keys.
    """
    parser = argparse.ArgumentParser(
        prog="devbastion.cli.keys",
        description="Create, read and share the provisioning SSH key.",
    )
    add_logging_cli_args(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    # public
    public_parser = subparsers.add_parser(
        "public", help="Print the public key of the local key file, creating it if needed."
    )
    public_parser.add_argument("--path", help="Private key file (default: settings).")
    bits_group = public_parser.add_mutually_exclusive_group()
    bits_group.add_argument(
        "--provider",
        choices=[p.value for p in ProviderName],
        help="Size a new key for this provider.",
    )
    bits_group.add_argument(
        "--bits", type=int, choices=[2048, 3072, 4096], help="Size of a new key."
    )
    _add_format_arg(public_parser)
    public_parser.set_defaults(func=run_public)

    # shared
    shared_parser = subparsers.add_parser(
        "shared", help="Print the public half of the team key stored in Vault."
    )
    add_vault_cli_args(shared_parser)
    _add_format_arg(shared_parser)
    shared_parser.set_defaults(func=run_shared)

    # store-shared
    store_parser = subparsers.add_parser(
        "store-shared", help="Store a local PEM key as the team key in Vault."
    )
    add_vault_cli_args(store_parser)
    store_parser.add_argument("--path", required=True, help="Private key file.")
    store_parser.set_defaults(func=run_store_shared)

    args = parser.parse_args()
    configure_logging(args)

    try:
        if inspect.iscoroutinefunction(args.func):
            asyncio.run(args.func(args))
        else:
            args.func(args)
    except MissingSharedSecret as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print("To create them:", file=sys.stderr)
        for command in exc.instructions:
            print("###", file=sys.stderr)
            print(command, file=sys.stderr)
        sys.exit(1)
    except (DevBastionError, RuntimeError, OSError, ValueError) as exc:
        print(f"Keys CLI error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

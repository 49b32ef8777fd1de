"""
devbastion/cli/common.py

Argument groups shared by the devbastion CLIs: logging verbosity and Vault
connectivity.
"""

from __future__ import annotations

import argparse
import logging
import sys

from devbastion.models.vault import VaultSettings


def add_logging_cli_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )


def configure_logging(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def add_vault_cli_args(subparser: argparse.ArgumentParser) -> None:
    """
    Add CLI arguments for Vault connectivity:
      - Mutually exclusive: K8s auth role vs direct token
      - Vault address, token path, KV mount, SSL verification toggle
    """
    group = subparser.add_mutually_exclusive_group()
    group.add_argument(
        "--vault-role-name",
        help="Vault K8s auth role name (mutually exclusive with --vault-token).",
    )
    group.add_argument(
        "--vault-token",
        help="Direct Vault token (mutually exclusive with --vault-role-name).",
    )
    subparser.add_argument(
        "--vault-addr",
        default="http://127.0.0.1:8200",
        help="Vault address (default: http://127.0.0.1:8200).",
    )
    subparser.add_argument(
        "--vault-token-path",
        default="/var/run/secrets/kubernetes.io/serviceaccount/token",
        help="Path to JWT token for K8s auth.",
    )
    subparser.add_argument(
        "--kv-mount",
        default="secret",
        help="KV v2 mount holding the shared keys (default: secret).",
    )
    subparser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        help="Disable SSL certificate verification (default: verify SSL).",
    )


def build_vault_settings(args: argparse.Namespace) -> VaultSettings:
    """
    Build a VaultSettings object from CLI arguments.
    """
    return VaultSettings(
        vault_addr=args.vault_addr,
        vault_role_name=args.vault_role_name,
        direct_vault_token=args.vault_token,
        token_path=args.vault_token_path,
        kv_mount=args.kv_mount,
        verify_ssl=not args.no_verify_ssl,
    )

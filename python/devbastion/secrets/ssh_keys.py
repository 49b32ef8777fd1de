"""
devbastion/secrets/ssh_keys.py

Team-wide SSH keypair kept in Vault:
 - fetch_shared_keypair: read both halves; if either is missing, generate a
   fresh pair, log the commands that would store it, and raise
   MissingSharedSecret instead of carrying on with a key nobody else has.
 - store_shared_keypair: write a local PEM key (and its public half) to Vault.
 - storage_instructions: the operator commands for a generated pair.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import aiohttp

from devbastion.errors import MissingSharedSecret
from devbastion.models.providers import KEY_BITS_MAP, ProviderName
from devbastion.models.ssh import SharedKeyNames, SharedKeyPair
from devbastion.secrets.vault_client import AsyncVaultClient
from devbastion.utils.async_retry import async_retry
from devbastion.utils.keys import (
    encode_private_key_pem,
    generate_private_key,
    parse_private_key_pem,
    ssh_public_key,
)

logger = logging.getLogger(__name__)


@async_retry(retries=3, retry_on=(aiohttp.ClientError,))
async def _read_key_half(
    vault_client: AsyncVaultClient, path: str, field: str
) -> Optional[str]:
    secret = await vault_client.read_secret_if_exists(path)
    if secret is None:
        return None
    value = secret.get(field)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def storage_instructions(
    private_pem: str,
    public_b64: str,
    names: SharedKeyNames,
    kv_mount: str = "secret",
) -> List[str]:
    """
    Shell commands that store a generated pair under the shared names.

    The private key is newline-escaped so it fits on one line; printf turns the
    escapes back into newlines.
    """
    escaped = private_pem.replace("\n", "\\n")
    return [
        f"printf -- '{escaped}' | vault kv put -mount={kv_mount} "
        f"{names.private_key_path} {names.value_field}=-",
        f"printf -- '{public_b64}' | vault kv put -mount={kv_mount} "
        f"{names.public_key_path} {names.value_field}=-",
    ]


async def fetch_shared_keypair(
    vault_client: AsyncVaultClient,
    names: Optional[SharedKeyNames] = None,
    key_bits: int = KEY_BITS_MAP[ProviderName.gcp],
    kv_mount: str = "secret",
) -> SharedKeyPair:
    """
    Fetch the shared SSH keypair from Vault.

    Args:
        vault_client: An open AsyncVaultClient.
        names: Secret paths of the two halves.
        key_bits: Size of the replacement key generated when a half is missing.
        kv_mount: KV mount used in the printed instructions.

    Returns:
        SharedKeyPair: PEM private key and base64 wire-format public key.

    Raises:
        MissingSharedSecret: If either half is absent; carries the instructions
            for storing a freshly generated pair.
        RuntimeError: On Vault errors other than a missing secret.
    """
    names = names or SharedKeyNames()

    private_key = await _read_key_half(
        vault_client, names.private_key_path, names.value_field
    )
    public_key = await _read_key_half(
        vault_client, names.public_key_path, names.value_field
    )

    if private_key is None or public_key is None:
        missing = [
            path
            for path, value in (
                (names.private_key_path, private_key),
                (names.public_key_path, public_key),
            )
            if value is None
        ]
        generated = generate_private_key(key_bits)
        private_pem = encode_private_key_pem(generated).decode("ascii")
        public_b64 = ssh_public_key(generated).to_base64()
        instructions = storage_instructions(private_pem, public_b64, names, kv_mount)

        logger.warning("No shared ssh keys in Vault (missing: %s)", ", ".join(missing))
        logger.info("To create them:")
        for command in instructions:
            logger.info("###")
            logger.info("%s", command)
        raise MissingSharedSecret(missing, instructions)

    return SharedKeyPair(private_key=private_key, public_key=public_key)


async def store_shared_keypair(
    vault_client: AsyncVaultClient,
    private_pem: bytes,
    names: Optional[SharedKeyNames] = None,
) -> SharedKeyPair:
    """
    Validate a PEM private key and write it, plus its public half, to Vault.

    Raises:
        InvalidKeyFile, UnsupportedKeyType, MalformedKey: If the PEM is unusable.
        RuntimeError: If Vault rejects the write.
    """
    names = names or SharedKeyNames()
    key = parse_private_key_pem(private_pem, "<shared key>")
    pair = SharedKeyPair(
        private_key=private_pem.decode("ascii"),
        public_key=ssh_public_key(key).to_base64(),
    )

    await vault_client.write_secret(
        names.private_key_path, {names.value_field: pair.private_key}
    )
    await vault_client.write_secret(
        names.public_key_path, {names.value_field: pair.public_key}
    )
    return pair

"""
devbastion/utils/keys.py

Lifecycle of the RSA keypair used to log into provisioned hosts:
  - load_or_create_public_key: read the PEM key at a path, generating it first
    if the file does not exist, and return the SSH public key.
  - generate_private_key / encode_private_key_pem / ssh_public_key: the
    building blocks, shared with the secret-store-backed variant.

The on-disk format is a single PEM block labeled "RSA PRIVATE KEY" holding the
PKCS#1 DER encoding of the key, mode 0600. A freshly generated key is written
to a temporary file in the same directory and hard-linked into place, so the
key file only ever appears complete, and a process that loses a creation race
reads the winner's key instead of overwriting it.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import tempfile
from typing import Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from devbastion.errors import InvalidKeyFile, MalformedKey, UnsupportedKeyType
from devbastion.models.providers import DEFAULT_KEY_BITS
from devbastion.models.ssh import SSHPublicKey

logger = logging.getLogger(__name__)

PEM_BLOCK_TYPE = "RSA PRIVATE KEY"
KEY_FILE_MODE = 0o600

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<type>[^-\r\n]+)-----\r?\n"
    rb"(?P<body>.*?)"
    rb"-----END (?P=type)-----",
    re.DOTALL,
)


def generate_private_key(key_bits: int = DEFAULT_KEY_BITS) -> rsa.RSAPrivateKey:
    """Generate a new RSA private key with public exponent 65537."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_bits)


def encode_private_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    """Encode a key as PKCS#1 DER inside an unencrypted "RSA PRIVATE KEY" PEM block."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def ssh_public_key(private_key: rsa.RSAPrivateKey) -> SSHPublicKey:
    """Derive the SSH wire-format public key of `private_key`."""
    line = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    )
    return SSHPublicKey.from_openssh(line)


def decode_pem_block(data: bytes) -> Tuple[str, bytes]:
    """
    Find the first PEM block in `data`.

    Returns:
        (block_type, der_bytes)

    Raises:
        ValueError: If there is no well-formed PEM block.
    """
    match = _PEM_BLOCK_RE.search(data)
    if match is None:
        raise ValueError("no PEM block found")

    lines = match.group("body").splitlines()
    # RFC 1421 headers ("Proc-Type: 4,ENCRYPTED", ...) end at the first blank line.
    if lines and b":" in lines[0]:
        end = next((i for i, line in enumerate(lines) if not line.strip()), len(lines))
        lines = lines[end:]

    try:
        der = base64.b64decode(b"".join(b"".join(lines).split()), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"PEM body is not valid base64: {exc}") from exc

    return match.group("type").decode("ascii"), der


def _pkcs1_pem(der: bytes) -> bytes:
    # The PEM loader picks its parser from the label, so this accepts PKCS#1 only.
    encoded = base64.b64encode(der)
    body = b"".join(encoded[i : i + 64] + b"\n" for i in range(0, len(encoded), 64))
    return (
        f"-----BEGIN {PEM_BLOCK_TYPE}-----\n".encode("ascii")
        + body
        + f"-----END {PEM_BLOCK_TYPE}-----\n".encode("ascii")
    )


def parse_private_key_pem(data: bytes, path: str) -> rsa.RSAPrivateKey:
    """
    Parse PEM data holding one PKCS#1 RSA private key.

    Raises:
        InvalidKeyFile: If no PEM block is found.
        UnsupportedKeyType: If the block is not an "RSA PRIVATE KEY".
        MalformedKey: If the DER payload is not an RSA private key.
    """
    try:
        block_type, der = decode_pem_block(data)
    except ValueError as exc:
        raise InvalidKeyFile(f"no PEM data in {path!r}: {exc}", path) from exc

    if block_type != PEM_BLOCK_TYPE:
        raise UnsupportedKeyType(
            f"wrong key type {block_type!r} in {path!r}", path, block_type
        )

    try:
        key = serialization.load_pem_private_key(_pkcs1_pem(der), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise MalformedKey(f"cannot parse RSA private key in {path!r}: {exc}", path) from exc

    if not isinstance(key, rsa.RSAPrivateKey):
        raise MalformedKey(f"key in {path!r} is not an RSA key", path)
    return key


def write_private_key(path: str, private_key: rsa.RSAPrivateKey) -> bool:
    """
    Persist `private_key` at `path` with owner-only permissions, unless some
    other writer created the file first.

    Returns:
        True if this call created the file, False if it already existed.

    Raises:
        OSError: On any filesystem failure other than losing the race.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".sshkey-")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encode_private_key_pem(private_key))
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_path, KEY_FILE_MODE)

        try:
            os.link(tmp_path, path)
        except FileExistsError:
            return False
        return True
    finally:
        os.unlink(tmp_path)


def load_or_create_public_key(
    path: str, key_bits: int = DEFAULT_KEY_BITS
) -> SSHPublicKey:
    """
    Read the RSA private key at `path`, generating it first if the file does
    not exist, and return the matching SSH public key.

    A freshly generated key is never trusted from memory: the file is read back
    and parsed exactly like an existing one. Calling this twice on the same path
    returns the same key and leaves the file untouched the second time.

    Args:
        path: Location of the PEM key file.
        key_bits: Size of a newly generated key (3072 for GCP node metadata).

    Returns:
        SSHPublicKey: The public half of the persisted key.

    Raises:
        InvalidKeyFile, UnsupportedKeyType, MalformedKey: If the file exists
            but does not hold a usable key.
        OSError: If the file cannot be read or written.
    """
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except FileNotFoundError:
        created = write_private_key(path, generate_private_key(key_bits))
        logger.debug(
            "%s %d-bit RSA key at %s",
            "generated" if created else "lost creation race for",
            key_bits,
            path,
        )
        with open(path, "rb") as fh:
            data = fh.read()

    return ssh_public_key(parse_private_key_pem(data, path))

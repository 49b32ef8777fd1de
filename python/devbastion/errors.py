"""
devbastion/errors.py

Exception hierarchy shared by the address allocator, key manager, SSH config
builder and the secret-store-backed key variant.

Only a missing key file is self-healing (it triggers generation and is never
raised to callers). Everything below is surfaced to the direct caller.
"""

from __future__ import annotations

from typing import List, Optional


class DevBastionError(Exception):
    """Base class for all devbastion errors."""


class AddressRangeExhausted(DevBastionError):
    """No further usable address exists in the given prefix.

    Attributes:
        prefix (str): The prefix that ran out of addresses, in CIDR notation.
    """

    def __init__(self, prefix: str) -> None:
        super().__init__(f"network {prefix} exhausted")
        self.prefix = prefix


class KeyFileError(DevBastionError):
    """A private key file exists but cannot be used.

    Attributes:
        path (str): The key file path.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class InvalidKeyFile(KeyFileError):
    """The key file holds no PEM block."""


class UnsupportedKeyType(KeyFileError):
    """The PEM block is not labeled 'RSA PRIVATE KEY'.

    Attributes:
        block_type (str): The label that was found instead.
    """

    def __init__(self, message: str, path: str, block_type: str) -> None:
        super().__init__(message, path)
        self.block_type = block_type


class MalformedKey(KeyFileError):
    """The PEM payload does not parse as a PKCS#1 RSA private key."""


class MissingSharedSecret(DevBastionError):
    """A shared key half is absent from the secret store.

    A fresh keypair was generated and the operator instructions for storing it
    are attached, but provisioning must not continue on a key nobody else has.

    Attributes:
        missing (List[str]): Secret paths that were not found.
        instructions (List[str]): Shell commands that store the generated pair.
    """

    def __init__(
        self,
        missing: List[str],
        instructions: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            "cannot proceed without necessary ssh keys; missing: "
            + ", ".join(missing)
        )
        self.missing = missing
        self.instructions = instructions or []


class SSHConfigError(DevBastionError):
    """Base class for SSH client config construction failures."""


class InvalidIdentityPath(SSHConfigError):
    """The identity file path cannot be resolved to an absolute path.

    Attributes:
        identity (str): The offending identity path, as given.
    """

    def __init__(self, identity: object, reason: str) -> None:
        super().__init__(f"invalid identity path {identity!r}: {reason}")
        self.identity = identity


class InvalidHostAddress(SSHConfigError):
    """The host address cannot be written as a single config token.

    Attributes:
        address (str): The offending address, as given.
    """

    def __init__(self, address: object, reason: str) -> None:
        super().__init__(f"invalid host address {address!r}: {reason}")
        self.address = address


class MissingBastionHost(SSHConfigError):
    """A workload host was written before the bastion host it proxies through."""

    def __init__(self, path: str) -> None:
        super().__init__(f"no bastion host in ssh config {path} yet")
        self.path = path


class ConfigWriteFailed(SSHConfigError):
    """Opening or writing the SSH config file failed.

    Attributes:
        path (str): The config file path.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"failed to write ssh config {path}: {reason}")
        self.path = path

# devbastion/models/ssh.py

from __future__ import annotations

import base64
from pydantic import BaseModel, ConfigDict, field_validator


class SSHPublicKey(BaseModel):
    """
    An SSH public key in wire format, as consumed by authorized_keys files and
    cloud instance metadata. Derived from a private key, never persisted alone.
    """

    model_config = ConfigDict(frozen=True)

    key_type: str
    blob: bytes

    @field_validator("blob")
    @classmethod
    def validate_blob(cls, val: bytes) -> bytes:
        if not val:
            raise ValueError("blob must be non-empty wire-format key bytes")
        return val

    @classmethod
    def from_openssh(cls, line: bytes) -> SSHPublicKey:
        """
        Parse an OpenSSH public key line such as b"ssh-rsa AAAA... comment".
        """
        parts = line.strip().split()
        if len(parts) < 2:
            raise ValueError("OpenSSH public key line needs a type and a key blob")
        return cls(key_type=parts[0].decode("ascii"), blob=base64.b64decode(parts[1]))

    def to_base64(self) -> str:
        return base64.b64encode(self.blob).decode("ascii")

    def authorized_key(self) -> str:
        """
        Render one authorized_keys line, newline terminated.
        """
        return f"{self.key_type} {self.to_base64()}\n"


class SharedKeyNames(BaseModel):
    """
    Fixed secret-store paths holding the team-wide SSH keypair halves.
    The private half is PEM text, the public half is the base64 wire blob.
    """

    private_key_path: str = "devbastion/ssh/main-ssh-private-key"
    public_key_path: str = "devbastion/ssh/main-ssh-public-key"
    value_field: str = "value"


class SharedKeyPair(BaseModel):
    """
    A keypair fetched from the secret store.
    """

    private_key: str
    public_key: str

    @field_validator("private_key", "public_key")
    @classmethod
    def validate_non_empty(cls, val: str) -> str:
        if not val.strip():
            raise ValueError("shared key halves must be non-empty strings")
        return val

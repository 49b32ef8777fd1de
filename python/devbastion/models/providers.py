"""
devbastion.models.providers

ProviderName plus the per-provider SSH key requirements.

GCP only injects 3072-bit RSA keys from node metadata into authorized_keys;
2048 and 4096 bit keys show up in the console but never reach the nodes.
"""

from enum import Enum
from typing import Dict


class ProviderName(str, Enum):
    aws = "aws"
    gcp = "gcp"


DEFAULT_KEY_BITS = 2048

KEY_BITS_MAP: Dict[ProviderName, int] = {
    ProviderName.aws: 2048,
    ProviderName.gcp: 3072,
}

# Default login user of the images each provider's dev stacks boot.
SSH_USER_MAP: Dict[ProviderName, str] = {
    ProviderName.aws: "fedora",
    ProviderName.gcp: "ubuntu",
}


def key_bits_for(provider: ProviderName) -> int:
    if provider not in KEY_BITS_MAP:
        raise ValueError(f"Unsupported provider: {provider}")
    return KEY_BITS_MAP[provider]


__all__ = [
    "ProviderName",
    "DEFAULT_KEY_BITS",
    "KEY_BITS_MAP",
    "SSH_USER_MAP",
    "key_bits_for",
]
